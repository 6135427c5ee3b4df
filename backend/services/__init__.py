"""
Services module for the menu item editor
Contains the editing session logic used by the API routers
"""
