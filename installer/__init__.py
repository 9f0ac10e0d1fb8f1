"""
Installers for the host-level prerequisites of a Lobsters deployment:
system packages, the deploy account with its Ruby runtime, and the MariaDB
schema.
"""
