# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/bootstrap/services/openldap.py

from __future__ import annotations

from typing import Any, Dict, List

from infractl.bootstrap.services.base import Remediation, SecretField, ServiceComponent
from infractl.bootstrap.values import ImageRef
from infractl.config.models import BootstrapConfig

# openldap-stack-ha sub-components and the images they run
IMAGES: Dict[str, ImageRef] = {
    "image": ImageRef("docker.io/jpgouin/openldap", "2.6.9-fix"),
    "initSchema": ImageRef("docker.io/library/debian", "latest"),
    "initTLSSecret": ImageRef("docker.io/alpine/openssl", "latest"),
    "ltb-passwd": ImageRef("docker.io/tiredofit/self-service-password", "5.2.3"),
    "phpldapadmin": ImageRef("docker.io/osixia/phpldapadmin", "0.9.0"),
}

ADMIN_PASSWORD_KEY = "LDAP_ADMIN_PASSWORD"


class OpenLDAPService(ServiceComponent):
    """
    OpenLDAP (jp-gouin openldap-stack-ha) with phpLDAPadmin and the LTB
    self-service password UI. A post-install job enables memberOf/refint.
    """

    def __init__(self, cfg: BootstrapConfig):
        super().__init__(
            name="openldap",
            chart=cfg.openldap,
            namespace=cfg.namespace,
            release_name=cfg.release_name,
            kubeconfig=cfg.kubeconfig,
            settle_seconds=10,
            credential=SecretField(name=cfg.release_name, key=ADMIN_PASSWORD_KEY),
            snapshot_name="infractl.step1.json",
        )
        self.cfg = cfg

    # ------------------------------------------------------------------
    def values(self) -> Dict[str, Any]:
        cfg = self.cfg
        base_dn = cfg.base_dn

        values: Dict[str, Any] = {
            "global": {
                "ldapDomain": cfg.domain,
                "adminPassword": cfg.admin_password.get_secret_value(),
                "configPassword": cfg.config_password.get_secret_value(),
            },
        }

        for key, image in IMAGES.items():
            if key == "image":
                values["image"] = image.values()
            else:
                values[key] = {"image": image.values()}

        values["ltb-passwd"]["ldap"] = {
            "server": f"ldap://{cfg.release_name}",
            "searchBase": base_dn,
            "bindDN": cfg.admin_dn,
            "bindPWKey": ADMIN_PASSWORD_KEY,
        }
        return values

    def remediation(self) -> Remediation:
        cfg = self.cfg
        return Remediation(
            name=f"{cfg.release_name}-memberof-setup",
            template="memberof-job.yaml.j2",
            bindings={
                "release_name": cfg.release_name,
                "namespace": cfg.namespace,
                "base_dn": cfg.base_dn,
                "admin_password": cfg.admin_password.get_secret_value(),
            },
        )

    # ------------------------------------------------------------------
    def follow_up(self, credential: str = "") -> List[str]:
        ns, rel, base_dn = self.namespace, self.release_name, self.cfg.base_dn
        lines = [
            "Verify with:",
            f"  kubectl -n {ns} get pods -l app.kubernetes.io/instance={rel}",
            f"  kubectl -n {ns} logs job/{rel}-memberof-setup",
            "",
            "Then test the LDAP connection (prompts for the admin password):",
            f"  kubectl -n {ns} exec -it statefulset/{rel} -- "
            f"ldapsearch -x -H ldap://{rel}:389 -D {self.cfg.admin_dn} -W -b '{base_dn}' -s base",
            "",
            "External access (once port-forwarding is active):",
            "  phpLDAPadmin: http://localhost:9876",
            "  LDAP: ldap://localhost:3890",
            f"  ldapsearch -x -H ldap://localhost:3890 -D {self.cfg.admin_dn} -W -b '{base_dn}' -s base",
            "",
            f"OpenLDAP is configured with base DN '{base_dn}'.",
        ]
        if credential:
            lines.append(f"Admin password stored in secret {ns}/{rel}: {credential}")
        else:
            lines.append(
                f"Admin password: kubectl -n {ns} get secret {rel} "
                f"-o jsonpath='{{.data.{ADMIN_PASSWORD_KEY}}}' | base64 -d"
            )
        return lines

    def snapshot(self) -> Dict[str, Any]:
        return self.cfg.model_dump(mode="json")
