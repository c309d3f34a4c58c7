"""Image references and the default ECR lifecycle policy."""

import json

# Keep only one untagged image, expire all others
DEFAULT_LIFECYCLE_POLICY = {
    "rules": [
        {
            "rulePriority": 1,
            "description": "Keep only one untagged image, expire all others",
            "selection": {
                "tagStatus": "untagged",
                "countType": "imageCountMoreThan",
                "countNumber": 1,
            },
            "action": {
                "type": "expire",
            },
        }
    ]
}


def default_lifecycle_policy_text() -> str:
    return json.dumps(DEFAULT_LIFECYCLE_POLICY, indent=4)


def registry_host(account_id: str, region: str) -> str:
    """ECR registry hostname for an account and region."""
    return f"{account_id}.dkr.ecr.{region}.amazonaws.com"


def image_uri(account_id: str, region: str, image_name: str, image_tag: str | None = None) -> str:
    uri = f"{registry_host(account_id, region)}/{image_name}"
    if image_tag:
        uri = f"{uri}:{image_tag}"
    return uri


def repository_arn(account_id: str, region: str, image_name: str) -> str:
    # Built by hand since the repository is not a native stack resource
    return f"arn:aws:ecr:{region}:{account_id}:repository/{image_name}"
