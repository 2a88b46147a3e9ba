"""
Session orchestration: mode state machine, panels and bulk upload workflow.
"""
