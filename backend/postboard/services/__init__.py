# Services package init
"""
Postboard Backend — Services Layer
===================================

Service Inventory:
    - AuthService: password hashing, token issue/verify, signup and login
    - PostService: post listing and owner-checked create/update/delete

Services receive the request's AsyncSession as an argument and never touch
HTTP objects, so they can be unit-tested with a mocked session.
"""
