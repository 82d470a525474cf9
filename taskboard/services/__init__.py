"""
Service layer.

``accounts`` holds the registration/login/session lifecycle and user
preferences; ``tasks`` holds task CRUD, archiving and bulk updates.  Both
raise ``taskboard.errors`` exceptions and talk to storage only through
``taskboard.store``.
"""
