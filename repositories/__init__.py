"""
repositories/ - Data Access Layer
==================================
Each repository encapsulates the persistence of one domain entity on top of
the generic db layer and returns domain model objects.
"""
