"""
Services module for league, draft and scoring business logic.

This module organizes services into:
- draft: Snake-draft coordinator and league phase transitions
- scoring: Storefront telemetry, the daily scoring run, bomb damage and team scores
- league_service / catalog_service: League membership and read-only catalog lookups
"""
