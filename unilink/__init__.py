"""UniLink backend package: models, services, routes and the matching engine.

Multi-tenant alumni networking API: profiles, events, messaging, feed,
notifications, newsletters, exam results, jobs and recommendations.
"""
