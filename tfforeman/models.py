from typing import Any, ClassVar, Dict, Generic, List, Self, Tuple, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field

# ----------------------------------------------------------------------
# Generic Models
# ----------------------------------------------------------------------


class KVParameter(BaseModel):
    """Inline name/value parameter, eg on domains and hostgroups."""

    model_config = ConfigDict(extra="ignore")

    name: str
    value: str


class ForemanObject(BaseModel):
    """Attributes shared by every Foreman API entity.

    The `id` is assigned by Foreman and remains `None` until the object was
    created. Unknown response keys are silently dropped.

    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    # Keys Foreman computes itself and that must never be sent back.
    READ_ONLY: ClassVar[Tuple[str, ...]] = ("id", "created_at", "updated_at")

    # Keys that identify the parent of a nested resource. Foreman does not
    # return them, so the adapters must carry them over from the input.
    PARENT_KEYS: ClassVar[Tuple[str, ...]] = ()

    id: int | None = None
    name: str = ""
    created_at: str | None = None
    updated_at: str | None = None

    def payload(self) -> Dict[str, Any]:
        """Return the request (write) representation of the object."""
        return self.model_dump(
            exclude=set(self.READ_ONLY), exclude_none=True, by_alias=True
        )

    @classmethod
    def from_response(cls, data: Any) -> Self:
        """Return the object from its response (read) representation."""
        return cls.model_validate(data)

    def parent_path(self) -> str:
        """Return eg `hostgroups/3` for nested resources and "" otherwise."""
        return ""


def nested_ids(objects: List[ForemanObject]) -> List[int]:
    """Reduce the nested objects Foreman returns on read to their IDs."""
    return [_.id for _ in objects if _.id is not None]


# ----------------------------------------------------------------------
# Foreman Entities
# ----------------------------------------------------------------------


class SmartProxy(ForemanObject):
    """Proxy that exposes DHCP, DNS, TFTP, Puppet, ... to Foreman."""

    # Eg "https://proxy.company.com:8443".
    url: str = ""


class Architecture(ForemanObject):
    operatingsystem_ids: List[int] = []

    @classmethod
    def from_response(cls, data: Any) -> Self:
        resp = ArchitectureResponse.model_validate(data)
        return cls.model_validate(
            resp.model_dump(exclude={"operatingsystems"})
            | {"operatingsystem_ids": nested_ids(resp.operatingsystems)}
        )


class ArchitectureResponse(Architecture):
    operatingsystems: List[ForemanObject] = []


class Domain(ForemanObject):
    fullname: str = ""
    domain_parameters_attributes: List[KVParameter] = []

    def payload(self) -> Dict[str, Any]:
        data = super().payload()
        if not self.domain_parameters_attributes:
            del data["domain_parameters_attributes"]
        return data

    @classmethod
    def from_response(cls, data: Any) -> Self:
        resp = DomainResponse.model_validate(data)
        return cls.model_validate(
            resp.model_dump(exclude={"parameters"})
            | {"domain_parameters_attributes": resp.model_dump()["parameters"]}
        )


class DomainResponse(Domain):
    parameters: List[KVParameter] = []


class Environment(ForemanObject):
    """Puppet environment."""


class Media(ForemanObject):
    """Installation medium, eg a mirror of the distribution."""

    path: str = ""
    os_family: str = ""
    operatingsystem_ids: List[int] = []

    @classmethod
    def from_response(cls, data: Any) -> Self:
        resp = MediaResponse.model_validate(data)
        return cls.model_validate(
            resp.model_dump(exclude={"operatingsystems"})
            | {"operatingsystem_ids": nested_ids(resp.operatingsystems)}
        )


class MediaResponse(Media):
    operatingsystems: List[ForemanObject] = []


class Subnet(ForemanObject):
    network: str = ""
    mask: str = ""
    gateway: str = ""
    dns_primary: str = ""
    dns_secondary: str = ""

    # IP suggestion mode, eg "DHCP", "Internal DB" or "None".
    ipam: str = ""
    from_: str = Field(default="", alias="from")
    to: str = ""

    # Either "Static" or "DHCP".
    boot_mode: str = ""
    network_address: str = ""
    network_type: str = ""
    description: str = ""
    vlanid: int | None = None
    mtu: int | None = None

    # Smart proxies for the subnet services.
    template_id: int | None = None
    dhcp_id: int | None = None
    tftp_id: int | None = None
    httpboot_id: int | None = None
    bmc_id: int | None = None

    domain_ids: List[int] = []

    @classmethod
    def from_response(cls, data: Any) -> Self:
        resp = SubnetResponse.model_validate(data)
        return cls.model_validate(
            resp.model_dump(exclude={"domains"}, by_alias=True)
            | {"domain_ids": nested_ids(resp.domains)}
        )


class SubnetResponse(Subnet):
    domains: List[ForemanObject] = []


class Hostgroup(ForemanObject):
    """Template for hosts. Hostgroups form a tree via `parent_id`."""

    READ_ONLY: ClassVar[Tuple[str, ...]] = (
        "id",
        "created_at",
        "updated_at",
        "title",
    )

    # Computed by Foreman, eg "<parent 1>/<parent 2>/<name>".
    title: str = ""

    root_pass: str | None = None
    pxe_loader: str | None = None
    architecture_id: int | None = None
    compute_profile_id: int | None = None
    domain_id: int | None = None
    environment_id: int | None = None
    medium_id: int | None = None
    operatingsystem_id: int | None = None
    parent_id: int | None = None
    ptable_id: int | None = None
    puppet_ca_proxy_id: int | None = None
    puppet_proxy_id: int | None = None
    realm_id: int | None = None
    subnet_id: int | None = None
    content_source_id: int | None = None
    content_view_id: int | None = None
    lifecycle_environment_id: int | None = None

    puppetclass_ids: List[int] = []
    config_group_ids: List[int] = []
    group_parameters_attributes: List[KVParameter] = []

    def payload(self) -> Dict[str, Any]:
        data = super().payload()

        # Foreman only accepts the Puppet related IDs in a sub-object.
        data["puppet_attributes"] = {
            "puppetclass_ids": data.pop("puppetclass_ids"),
            "config_group_ids": data.pop("config_group_ids"),
        }
        if not self.group_parameters_attributes:
            del data["group_parameters_attributes"]
        return data

    @classmethod
    def from_response(cls, data: Any) -> Self:
        resp = HostgroupResponse.model_validate(data)
        nested = {"puppetclasses", "config_groups", "parameters"}
        return cls.model_validate(
            resp.model_dump(exclude=nested)
            | {
                "puppetclass_ids": nested_ids(resp.puppetclasses),
                "config_group_ids": nested_ids(resp.config_groups),
                "group_parameters_attributes": resp.model_dump()["parameters"],
            }
        )


class HostgroupResponse(Hostgroup):
    puppetclasses: List[ForemanObject] = []
    config_groups: List[ForemanObject] = []
    parameters: List[KVParameter] = []


class TemplateCombination(BaseModel):
    """Hostgroup/environment pair a provisioning template applies to.

    Foreman assigns an `id` to every combination. Removing a combination
    requires sending it once more with `_destroy` set; the flag only ever
    exists in update payloads.

    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int | None = None
    hostgroup_id: int | None = None
    environment_id: int | None = None
    destroy: bool = Field(default=False, alias="_destroy", exclude=True)

    def key(self) -> Tuple[int | None, int | None]:
        return (self.hostgroup_id, self.environment_id)

    def payload(self) -> Dict[str, Any]:
        data = self.model_dump(exclude={"destroy"}, exclude_none=True)
        if self.destroy:
            data["_destroy"] = True
        return data


class ProvisioningTemplate(ForemanObject):
    template: str = ""
    snippet: bool = False
    audit_comment: str = ""
    locked: bool = False

    # Optional for snippets, required otherwise.
    template_kind_id: int | None = None
    operatingsystem_ids: List[int] = []
    template_combinations_attributes: List[TemplateCombination] = []

    def payload(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(
            name=self.name,
            template=self.template,
            snippet=self.snippet,
            audit_comment=self.audit_comment,
            locked=self.locked,
            # Foreman wants quoted IDs here and `null` to clear the kind.
            template_kind_id=str(self.template_kind_id)
            if self.template_kind_id
            else None,
            # Always send the list since Foreman treats it as a replacement.
            operatingsystem_ids=list(self.operatingsystem_ids),
        )

        # Foreman rejects an empty or null list of combinations with a 500.
        combos = self.template_combinations_attributes
        if len(combos) > 0:
            data["template_combinations_attributes"] = [_.payload() for _ in combos]
        return data

    @classmethod
    def from_response(cls, data: Any) -> Self:
        resp = ProvisioningTemplateResponse.model_validate(data)
        nested = {"operatingsystems", "template_combinations"}
        return cls.model_validate(
            resp.model_dump(exclude=nested)
            | {
                "operatingsystem_ids": nested_ids(resp.operatingsystems),
                "template_combinations_attributes": [
                    _.model_copy(update={"destroy": False})
                    for _ in resp.template_combinations
                ],
            }
        )


class ProvisioningTemplateResponse(ProvisioningTemplate):
    operatingsystems: List[ForemanObject] = []
    template_combinations: List[TemplateCombination] = []


# Parent ID field and its plural resource name for nested parameters.
PARAMETER_PARENTS = (
    ("host_id", "hosts"),
    ("hostgroup_id", "hostgroups"),
    ("domain_id", "domains"),
    ("operatingsystem_id", "operatingsystems"),
    ("subnet_id", "subnets"),
)


class Parameter(ForemanObject):
    """Parameter nested under a host, hostgroup, domain, OS or subnet.

    Exactly one of the parent IDs must be set.

    """

    PARENT_KEYS: ClassVar[Tuple[str, ...]] = tuple(_[0] for _ in PARAMETER_PARENTS)

    value: str = ""
    host_id: int | None = None
    hostgroup_id: int | None = None
    domain_id: int | None = None
    operatingsystem_id: int | None = None
    subnet_id: int | None = None

    def payload(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value}

    def parent_path(self) -> str:
        for field, plural in PARAMETER_PARENTS:
            parent_id = getattr(self, field)
            if parent_id is not None:
                return f"{plural}/{parent_id}"
        raise ValueError("parameter requires the ID of its parent")


class KatelloProduct(ForemanObject):
    label: str = ""
    description: str = ""
    gpg_key_id: int | None = None
    ssl_ca_cert_id: int | None = None
    ssl_client_cert_id: int | None = None
    ssl_client_key_id: int | None = None
    sync_plan_id: int | None = None


class KatelloRepository(ForemanObject):
    label: str = ""
    description: str = ""
    product_id: int | None = None
    content_type: str = ""
    url: str = ""
    gpg_key_id: int | None = None
    unprotected: bool = False
    checksum_type: str = ""
    download_policy: str = ""

    # Either "mirror_content_only" or "additive".
    mirroring_policy: str = ""
    verify_ssl_on_sync: bool = False
    upstream_username: str = ""
    upstream_password: str = ""
    http_proxy_policy: str = ""
    http_proxy_id: int | None = None

    @classmethod
    def from_response(cls, data: Any) -> Self:
        resp = KatelloRepositoryResponse.model_validate(data)
        ret = cls.model_validate(resp.model_dump(exclude={"product"}))

        # Katello only returns the nested product on read.
        if ret.product_id is None and resp.product is not None:
            ret.product_id = resp.product.id
        return ret


class KatelloRepositoryResponse(KatelloRepository):
    product: ForemanObject | None = None


class ForemanTask(BaseModel):
    """Asynchronous task, eg the sync of a Katello repository."""

    model_config = ConfigDict(extra="ignore")

    class Humanized(BaseModel):
        model_config = ConfigDict(extra="ignore")

        action: str = ""
        errors: List[str] = []

    id: str
    label: str = ""
    pending: bool = False
    action: str = ""
    username: str = ""
    started_at: str | None = None
    ended_at: str | None = None
    state: str = ""
    result: str = ""
    progress: float = 0.0
    humanized: Humanized = Humanized()


# ----------------------------------------------------------------------
# Query Responses
# ----------------------------------------------------------------------

M = TypeVar("M", bound=ForemanObject)


class QuerySort(BaseModel):
    by: str | None = None
    order: str | None = None


class QueryResponse(BaseModel, Generic[M]):
    """Envelope of every `GET /api/<resources>` search.

    `subtotal` counts all entities that match the search, not just the ones
    on the current page, whereas `total` counts all entities of that type.

    """

    total: int = 0
    subtotal: int = 0
    page: int | None = None
    per_page: int | None = None
    search: str | None = None
    sort: QuerySort = QuerySort()
    results: List[M] = []


# ----------------------------------------------------------------------
# Provider Configuration
# ----------------------------------------------------------------------


class ProviderConfig(BaseModel):
    """User supplied provider settings."""

    model_config = ConfigDict(extra="forbid")

    server_hostname: str
    server_protocol: str = "https"

    client_username: str = ""
    client_password: str = ""

    # Skip the verification of the server certificate.
    client_tls_insecure: bool = False

    # Set either to a negative value to disable locations/organizations (only
    # relevant for Foreman < 1.21).
    location_id: int = 0
    organization_id: int = 0

    loglevel: str = "INFO"
    logfile: str = "-"

    # Request timeout in seconds.
    timeout: float = 60.0

    # Page size when following paginated search results.
    per_page: int = 100


class ForemanConfig(BaseModel):
    """Connection to one Foreman server.

    Every client function receives this explicitly. It is immutable and
    shared by all concurrent operations.

    """

    model_config = ConfigDict(
        extra="forbid", arbitrary_types_allowed=True, frozen=True
    )

    name: str = ""
    client: httpx.AsyncClient
    location_id: int = -1
    organization_id: int = -1
    per_page: int = 100
