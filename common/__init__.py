"""
Common protocol definitions shared by the console link and the bridge simulator.
"""
