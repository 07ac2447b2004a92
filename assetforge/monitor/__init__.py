"""Build report rendering.

Modules
-------
renderer
    ``ReportRenderer`` turns a ``BuildReport`` into Rich renderables for
    terminal display.
"""
