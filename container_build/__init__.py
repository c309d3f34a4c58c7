"""ECR repository custom resource and build helpers for container images."""
