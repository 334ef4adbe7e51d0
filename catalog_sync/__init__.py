"""catalog-sync: software catalog integrations.

Pulls Okta groups and their members into the catalog as Group entities
(one full-replace mutation per run), and provides scaffolder actions such
as zipping a template workspace.
"""
