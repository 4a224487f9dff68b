"""Autoscale Control Plane (ACP).

Fleet-level autoscaler that:
 - discovers the services of its group (docker swarm labels or a JSON file)
 - runs one periodic workload analysis per service
 - scales services within their configured bounds
 - lets several redundant instances run, with only the elected leader scaling

Followers keep analysing so a failover starts with warm analyser state.
"""
