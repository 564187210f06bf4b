"""Pipeline services: the build stage, artifact storage, the release stage
and the CI definition that schedules them."""
