# Services package init
"""
AppHub Backend — Services Layer
================================

What:  Every business rule of the engagement and workflow engine.
How:   Services are stateless singletons; each call receives the request's
       AsyncSession and commits its own unit of work.

Service Inventory:
    - FolderService:           bookmark folders (default folder, create/rename/delete)
    - BookmarkService:         idempotent bookmark toggle, implicit folder creation
    - RatingService:           like/dislike tri-state toggle and counts
    - DeveloperRequestService: developer request workflow and role elevation
    - AppStatusService:        app status transition table
    - NotificationDispatcher:  fire-and-forget mail notifications
    - MailTransport (abstract): LogMailTransport, HttpMailTransport
"""
