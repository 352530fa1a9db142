"""
Event stream components.
This package keeps one push connection to the salt-api event bus open and
fans every decoded event out to the registered listeners.
"""
