"""
===============================================================================
EFFICIENT - Core Module
===============================================================================
Shared constants and error types used by every other subpackage.

Modules:
    constants -- Numerical constants and run defaults
    errors    -- Exception hierarchy and argument validation helpers
===============================================================================
"""
