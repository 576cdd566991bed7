"""
jjterm TUI: Textual application and the askpass password bridge
"""
