"""AWS boto3 client for discovering EC2 node instances by Name tag prefix."""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    PartialCredentialsError,
    ProfileNotFound,
)

from ..config import AWSConfig
from ..exceptions import ClientConstructionError, CredentialError, PageFetchError
from . import dedupe

logger = logging.getLogger(__name__)

_AUTH_ERROR_CODES = frozenset({"AuthFailure", "UnauthorizedOperation", "ExpiredToken", "InvalidClientTokenId"})


class AWSClient:
    """Lists private IPs of EC2 instances whose ``Name`` tag starts with a prefix."""

    def __init__(self, aws_config: AWSConfig, running_only: bool = True):
        self._config = aws_config
        self._running_only = running_only

    def list_addresses(self, name_prefix: str) -> list[str]:
        ec2 = self._build_ec2()

        filters: list[dict[str, Any]] = []
        if name_prefix:
            filters.append({"Name": "tag:Name", "Values": [f"{name_prefix}*"]})
        if self._running_only:
            filters.append({"Name": "instance-state-name", "Values": ["running"]})

        addresses: list[str] = []
        try:
            pages = ec2.get_paginator("describe_instances").paginate(Filters=filters)
            for page in pages:
                for reservation in page.get("Reservations", []):
                    for raw in reservation.get("Instances", []):
                        address = self._instance_address(raw)
                        if address:
                            addresses.append(address)
        except (NoCredentialsError, PartialCredentialsError) as exc:
            raise CredentialError(f"Could not resolve AWS credentials: {exc}") from exc
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in _AUTH_ERROR_CODES:
                raise CredentialError(f"AWS rejected credentials: {exc}") from exc
            raise PageFetchError(f"describe_instances failed in {self._config.region}: {exc}") from exc
        except BotoCoreError as exc:
            raise PageFetchError(f"describe_instances failed in {self._config.region}: {exc}") from exc

        addresses = dedupe(addresses)
        logger.info(
            "EC2 discovery found %d instances", len(addresses),
            extra={"provider": "aws", "prefix": name_prefix, "addresses": addresses},
        )
        return addresses

    def _build_ec2(self):
        session_kwargs: dict[str, Any] = {"region_name": self._config.region}
        if self._config.credential_profile:
            session_kwargs["profile_name"] = self._config.credential_profile

        try:
            session = boto3.Session(**session_kwargs)
        except ProfileNotFound as exc:
            raise CredentialError(f"AWS profile not found: {exc}") from exc

        try:
            return session.client("ec2")
        except BotoCoreError as exc:
            raise ClientConstructionError(f"Could not build EC2 client: {exc}") from exc

    def _instance_address(self, raw: dict[str, Any]) -> str | None:
        state = raw.get("State", {}).get("Name")
        if self._running_only and state != "running":
            logger.debug("Skipping EC2 instance %s in state %s", raw.get("InstanceId"), state)
            return None

        interfaces = sorted(
            raw.get("NetworkInterfaces", []),
            key=lambda nic: nic.get("Attachment", {}).get("DeviceIndex", 0),
        )
        if interfaces:
            address = interfaces[0].get("PrivateIpAddress")
        else:
            address = raw.get("PrivateIpAddress")

        if not address:
            logger.warning("EC2 instance %s has no private IP, skipping", raw.get("InstanceId"))
            return None
        return address
