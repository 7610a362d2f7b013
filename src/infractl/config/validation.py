# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/config/validation.py

from __future__ import annotations

import ipaddress

from infractl.errors import InputValidationError

PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)

# Smallest accepted block: /24 (256 addresses)
MAX_PREFIX_LEN = 24


def validate_network_block(cidr: str) -> ipaddress.IPv4Network:
    """
    Validate an operator supplied network block.

    The block must be a private IPv4 network (10/8, 172.16/12, 192.168/16)
    given by its network address, with a /24 or wider mask.
    Returns the parsed network; raises InputValidationError otherwise.
    """
    cidr = (cidr or "").strip()
    if not cidr:
        raise InputValidationError("CIDR cannot be empty")

    if "/" not in cidr:
        raise InputValidationError(
            f"invalid CIDR format: {cidr!r} (expected <address>/<prefix>)"
        )

    try:
        iface = ipaddress.ip_interface(cidr)
    except ValueError as e:
        raise InputValidationError(f"invalid CIDR format: {e}") from e

    if iface.version != 4:
        raise InputValidationError("only IPv4 networks are supported")

    network = iface.network
    if iface.ip != network.network_address:
        raise InputValidationError(
            "CIDR must represent a network, not a host address"
        )

    if not any(network.subnet_of(p) for p in PRIVATE_NETWORKS):
        raise InputValidationError(
            "CIDR should be a private network "
            "(10.0.0.0/8, 172.16.0.0/12, or 192.168.0.0/16)"
        )

    if network.prefixlen > MAX_PREFIX_LEN:
        raise InputValidationError(
            "CIDR subnet too small, use /24 or larger (e.g., /24, /23, /22)"
        )

    return network


def base_dn_from_domain(domain: str) -> str:
    """
    Derive the directory root from a DNS domain.

    >>> base_dn_from_domain("example.lab")
    'dc=example,dc=lab'
    """
    labels = [p for p in domain.strip().split(".") if p]
    return ",".join(f"dc={label}" for label in labels)
