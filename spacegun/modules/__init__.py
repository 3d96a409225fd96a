"""
Spacegun Modules - Black Box Architecture

Each module is a self-contained black box with:
- Declared operations (identity, parameters, result type)
- A handler binding that only exists where the gateways live
- Hidden implementation details

Modules talk to each other only through the dispatcher.
"""
