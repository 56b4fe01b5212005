# HTTP API
