# Services package init
"""
User API Backend — Services Layer
===================================

Service Inventory:
    - UserService: user lookup, creation and update; bcrypt password hashing

Services take the request's AsyncSession as an argument and hold no state,
so tests can call them with a mocked session.
"""
