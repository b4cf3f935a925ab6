"""
Tool adapters exposing the diff engine to agent frameworks.
"""
