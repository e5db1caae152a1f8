"""Describe the Foreman resource types the provider manages.

Each `ResourceKind` binds a Terraform type name to its API path, domain model
and payload conventions. The CRUD and query layers are generic over these
descriptors, so adding a new Foreman entity rarely needs more than a model and
one registry entry.

"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Tuple

from tfforeman.combinations import reconcile_template
from tfforeman.models import (
    Architecture,
    Domain,
    Environment,
    Hostgroup,
    KatelloProduct,
    KatelloRepository,
    M,
    Media,
    Parameter,
    ProvisioningTemplate,
    SmartProxy,
    Subnet,
)


@dataclass(frozen=True)
class ResourceKind(Generic[M]):
    # Human readable name, eg "smart proxy". Used in error messages.
    name: str

    # Collection path relative to the API prefix, eg "smart_proxies".
    path: str
    model: type[M]

    # Foreman expects the payload wrapped in an object with this key, eg
    # `{"domain": {...}}`. `None` sends the payload as is.
    wrap: str | None = None

    # Inject the configured location and organization into write payloads.
    taxonomy: bool = True

    # Model fields that may serve as search predicates.
    search: Tuple[str, ...] = ("name",)

    # Merge the previous state into the new item before an update.
    reconcile: Callable[[M, M], M] | None = None

    def collection(self, parent: str = "") -> str:
        """Return eg `smart_proxies` or `hostgroups/3/parameters`."""
        return f"{parent}/{self.path}" if parent else self.path

    def item(self, id: int, parent: str = "") -> str:
        """Return eg `smart_proxies/42`."""
        return f"{self.collection(parent)}/{id}"

    def decode(self, data: Any) -> M:
        return self.model.from_response(data)


# ----------------------------------------------------------------------
# Registries
# ----------------------------------------------------------------------

SMART_PROXY = ResourceKind(
    "smart proxy", "smart_proxies", SmartProxy, taxonomy=False, search=("name", "url")
)
ARCHITECTURE = ResourceKind(
    "architecture", "architectures", Architecture, wrap="architecture"
)
DOMAIN = ResourceKind(
    "domain", "domains", Domain, wrap="domain", search=("name", "fullname")
)
ENVIRONMENT = ResourceKind(
    "environment", "environments", Environment, wrap="environment"
)
MEDIA = ResourceKind(
    "media", "media", Media, wrap="medium", search=("name", "path", "os_family")
)
SUBNET = ResourceKind(
    "subnet", "subnets", Subnet, wrap="subnet", search=("name", "network", "mask")
)
HOSTGROUP = ResourceKind(
    "hostgroup", "hostgroups", Hostgroup, wrap="hostgroup", search=("name", "title")
)
PROVISIONING_TEMPLATE = ResourceKind(
    "provisioning template",
    "provisioning_templates",
    ProvisioningTemplate,
    wrap="provisioning_template",
    taxonomy=False,
    search=("name", "snippet", "locked"),
    reconcile=reconcile_template,
)
PARAMETER = ResourceKind(
    "parameter", "parameters", Parameter, wrap="parameter", taxonomy=False
)
KATELLO_PRODUCT = ResourceKind(
    "katello product",
    "katello/products",
    KatelloProduct,
    taxonomy=False,
    search=("name", "label"),
)
KATELLO_REPOSITORY = ResourceKind(
    "katello repository",
    "katello/repositories",
    KatelloRepository,
    taxonomy=False,
    search=("name", "label", "product_id"),
)

# Terraform type name -> resource descriptor.
RESOURCES: Dict[str, ResourceKind] = {
    "foreman_smartproxy": SMART_PROXY,
    "foreman_architecture": ARCHITECTURE,
    "foreman_domain": DOMAIN,
    "foreman_environment": ENVIRONMENT,
    "foreman_media": MEDIA,
    "foreman_subnet": SUBNET,
    "foreman_hostgroup": HOSTGROUP,
    "foreman_provisioningtemplate": PROVISIONING_TEMPLATE,
    "foreman_parameter": PARAMETER,
    "foreman_katello_product": KATELLO_PRODUCT,
    "foreman_katello_repository": KATELLO_REPOSITORY,
}

# Every resource doubles as a data source. Parameters search underneath the
# parent named in the data source attributes.
DATA_SOURCES: Dict[str, ResourceKind] = dict(RESOURCES)
