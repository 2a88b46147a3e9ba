#!/usr/bin/env python3
"""
Environment Health Check Script for the Farmer Assistant.

Verifies the interpreter, local configuration and storage, the reachability
of the cloud backend, and the optional classifier and microphone runtimes.

Usage:
    python scripts/doctor.py

Exit codes:
    0: All required checks passed
    1: One or more required checks failed
"""

import asyncio
import importlib.util
import os
import sys


# ANSI color codes for terminal output
class Colors:
    GREEN = "\033[92m"
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


def print_success(message: str) -> None:
    print(f"{Colors.GREEN}✓{Colors.RESET} {message}")


def print_error(message: str) -> None:
    print(f"{Colors.RED}✗{Colors.RESET} {message}")


def print_warning(message: str) -> None:
    print(f"{Colors.YELLOW}⚠{Colors.RESET} {message}")


def check_python_version() -> bool:
    """
    Check that Python is 3.10 or newer.

    Returns:
        bool: True if check passes
    """
    version = sys.version_info
    label = f"{version.major}.{version.minor}.{version.micro}"
    if version >= (3, 10):
        print_success(f"Python version: {label}")
        return True
    print_error(f"Python version: {label} (expected 3.10+)")
    return False


def check_config_file() -> bool:
    """
    Check that settings load; a missing .env only warns.

    Returns:
        bool: True if settings are valid
    """
    if os.path.exists(".env"):
        print_success(".env file exists")
    else:
        print_warning(".env file not found (defaults and environment variables are used)")

    try:
        from farmer_assistant.core.config import get_settings

        settings = get_settings()
    except Exception as e:
        print_error(f"Settings invalid: {e}")
        return False

    print_success(f"Settings loaded (backend {settings.backend_url})")
    return True


def check_storage() -> bool:
    """
    Check that the local key-value store file is writable.

    Returns:
        bool: True if the storage directory can be written
    """
    from farmer_assistant.core.config import get_settings

    path = get_settings().storage_path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        probe = path.parent / ".doctor-probe"
        probe.write_text("ok", encoding="utf-8")
        probe.unlink()
    except OSError as e:
        print_error(f"Storage not writable at {path.parent}: {e}")
        return False

    print_success(f"Storage writable ({path})")
    return True


def check_backend() -> bool:
    """
    Check the cloud backend health route.

    Returns:
        bool: True if the backend answered
    """
    from farmer_assistant.services.gateway import GatewayClient
    from farmer_assistant.services.settings_store import InMemoryStorage, SettingsStore

    async def poll():
        client = GatewayClient(settings_store=SettingsStore(InMemoryStorage()))
        try:
            return await client.check_health()
        finally:
            await client.aclose()

    health = asyncio.run(poll())
    if health is None:
        print_error("Backend health check failed")
        return False
    if health.get("status") == "healthy":
        print_success("Backend healthy")
    else:
        print_warning(f"Backend reachable but reports: {health}")
    return True


def check_optional_module(module: str, extra: str, purpose: str) -> bool:
    """
    Report an optional runtime. Never fails the run.

    Returns:
        bool: Always True
    """
    if importlib.util.find_spec(module) is not None:
        print_success(f"{module} installed ({purpose})")
    else:
        print_warning(
            f"{module} not installed; {purpose} unavailable "
            f"(pip install 'farmer-assistant[{extra}]')"
        )
    return True


def main() -> int:
    """
    Run all health checks.

    Returns:
        int: Exit code (0 = success, 1 = failure)
    """
    print(f"\n{Colors.BOLD}🌾 Farmer Assistant Health Check{Colors.RESET}\n")

    results = [
        ("Python Version", check_python_version()),
        ("Configuration", check_config_file()),
    ]
    if results[-1][1]:
        results.append(("Local Storage", check_storage()))
        results.append(("Cloud Backend", check_backend()))
    results.append(
        ("Classifier Runtime", check_optional_module("tensorflowjs", "classifier", "local image classification"))
    )
    results.append(
        ("Microphone Runtime", check_optional_module("pyaudio", "voice", "voice recording"))
    )

    print(f"\n{Colors.BOLD}{'=' * 50}{Colors.RESET}")
    passed = sum(1 for _, result in results if result)
    total = len(results)

    if passed == total:
        print(f"{Colors.GREEN}{Colors.BOLD}✓ Ready ({passed}/{total} checks passed){Colors.RESET}\n")
        return 0

    print(
        f"{Colors.RED}{Colors.BOLD}✗ Problems found "
        f"({passed}/{total} checks passed, {total - passed} failed){Colors.RESET}\n"
    )
    print(f"{Colors.BOLD}Failed checks:{Colors.RESET}")
    for name, result in results:
        if not result:
            print(f"  {Colors.RED}✗{Colors.RESET} {name}")
    print()
    return 1


if __name__ == "__main__":
    sys.exit(main())
