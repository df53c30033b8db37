"""
Locust entrypoints, one per test.

Pass one of these files to ``locust -f`` (or pick it by name with the
``loadtest`` CLI).  Each module exposes only the user classes and the
single load shape its test needs, so Locust never sees a second shape.
"""
