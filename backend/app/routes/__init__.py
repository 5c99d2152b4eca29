# All application routes are in v1/
