"""talentbridge: compatibility identity layer and candidate matching service.

Serves legacy (numeric id, legacy-signed token) and native (string id,
native-signed token) clients from one MongoDB-backed entity graph.
"""
