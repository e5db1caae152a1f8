import pytest
from pydantic import ValidationError

from tfforeman.models import (
    Domain,
    ForemanConfig,
    ForemanTask,
    Hostgroup,
    KatelloRepository,
    KVParameter,
    Parameter,
    ProviderConfig,
    ProvisioningTemplate,
    QueryResponse,
    SmartProxy,
    Subnet,
    TemplateCombination,
)

from .conftest import load_specimen


class TestForemanObject:
    def test_smartproxy(self):
        proxy = SmartProxy.from_response(load_specimen("smartproxy.yaml"))

        # Unknown keys, eg `features`, must be ignored.
        assert proxy.model_dump() == {
            "id": 42,
            "name": "proxy.company.com",
            "url": "https://proxy.company.com:8443",
            "created_at": "2024-03-01 10:15:07 UTC",
            "updated_at": "2024-03-01 10:15:07 UTC",
        }

        # The payload must not contain keys Foreman computes itself.
        assert proxy.payload() == {
            "name": "proxy.company.com",
            "url": "https://proxy.company.com:8443",
        }

    def test_unset_foreign_keys_are_not_sent(self):
        """`None` means "not set" whereas 0 is a valid value."""
        assert "vlanid" not in Subnet(name="foo").payload()
        assert Subnet(name="foo", vlanid=0).payload()["vlanid"] == 0

    def test_subnet_from_alias(self):
        subnet = Subnet.model_validate({"name": "lan", "from": "10.0.0.10"})
        assert subnet.from_ == "10.0.0.10"
        assert subnet.payload()["from"] == "10.0.0.10"
        assert "from_" not in subnet.payload()

        # Nested domains on read become a list of IDs.
        subnet = Subnet.from_response({"id": 1, "domains": [{"id": 4}, {"id": 5}]})
        assert subnet.domain_ids == [4, 5]

    def test_domain(self):
        # Empty parameter lists must not be sent.
        assert Domain(name="example.com").payload() == {
            "name": "example.com",
            "fullname": "",
        }

        params = [{"name": "a", "value": "1"}]
        domain = Domain.from_response(
            {"id": 1, "name": "example.com", "parameters": params}
        )
        assert domain.domain_parameters_attributes == [KVParameter(name="a", value="1")]
        assert domain.payload()["domain_parameters_attributes"] == [
            {"name": "a", "value": "1"}
        ]


class TestHostgroup:
    def test_from_response(self):
        hg = Hostgroup.from_response(load_specimen("hostgroup.yaml"))
        assert hg.id == 7
        assert hg.title == "base/web"
        assert hg.parent_id == 3
        assert hg.environment_id is None
        assert hg.puppetclass_ids == [21, 22]
        assert hg.config_group_ids == [31]
        assert hg.group_parameters_attributes == [
            KVParameter(name="ssh_port", value="2222")
        ]

    def test_payload(self):
        hg = Hostgroup.from_response(load_specimen("hostgroup.yaml"))
        data = hg.payload()

        # Foreman computes the title and only accepts Puppet IDs in a sub-object.
        assert "title" not in data and "id" not in data
        assert "puppetclass_ids" not in data
        assert data["puppet_attributes"] == {
            "puppetclass_ids": [21, 22],
            "config_group_ids": [31],
        }
        assert data["parent_id"] == 3
        assert "environment_id" not in data


class TestProvisioningTemplate:
    def test_from_response(self):
        tpl = ProvisioningTemplate.from_response(
            load_specimen("provisioning_template.yaml")
        )
        assert tpl.template_kind_id == 3
        assert tpl.operatingsystem_ids == [2, 6]
        assert tpl.template_combinations_attributes == [
            TemplateCombination(id=101, hostgroup_id=7, environment_id=1),
            TemplateCombination(id=102, hostgroup_id=8, environment_id=1),
        ]

    def test_payload(self):
        tpl = ProvisioningTemplate(
            name="foo",
            template="install",
            template_kind_id=3,
            template_combinations_attributes=[
                TemplateCombination(hostgroup_id=7, environment_id=1)
            ],
        )
        assert tpl.payload() == {
            "name": "foo",
            "template": "install",
            "snippet": False,
            "audit_comment": "",
            "locked": False,
            "template_kind_id": "3",
            "operatingsystem_ids": [],
            "template_combinations_attributes": [
                {"hostgroup_id": 7, "environment_id": 1}
            ],
        }

    def test_payload_snippet(self):
        """Snippets clear the template kind and omit empty combinations."""
        data = ProvisioningTemplate(name="foo", snippet=True).payload()
        assert data["template_kind_id"] is None
        assert data["operatingsystem_ids"] == []
        assert "template_combinations_attributes" not in data

    def test_destroy_flag(self):
        combo = TemplateCombination(id=5, hostgroup_id=7, environment_id=1)
        assert combo.payload() == {"id": 5, "hostgroup_id": 7, "environment_id": 1}

        combo = combo.model_copy(update={"destroy": True})
        assert combo.payload() == {
            "id": 5,
            "hostgroup_id": 7,
            "environment_id": 1,
            "_destroy": True,
        }

        # The flag is transient and never part of the persisted state.
        assert "destroy" not in combo.model_dump()
        assert "_destroy" not in combo.model_dump(by_alias=True)


class TestParameter:
    @pytest.mark.parametrize(
        "parent, path",
        [
            ({"host_id": 1}, "hosts/1"),
            ({"hostgroup_id": 2}, "hostgroups/2"),
            ({"domain_id": 3}, "domains/3"),
            ({"operatingsystem_id": 4}, "operatingsystems/4"),
            ({"subnet_id": 5}, "subnets/5"),
        ],
    )
    def test_parent_path(self, parent, path):
        assert Parameter(name="a", value="b", **parent).parent_path() == path

    def test_parent_path_without_parent(self):
        """Foreman has no top level parameters endpoint."""
        with pytest.raises(ValueError):
            Parameter(name="a", value="b").parent_path()

    def test_payload(self):
        param = Parameter(id=1, name="a", value="b", hostgroup_id=2)
        assert param.payload() == {"name": "a", "value": "b"}


class TestKatello:
    def test_repository_product(self):
        repo = KatelloRepository.from_response(
            {"id": 5, "name": "BaseOS", "product": {"id": 9, "name": "RHEL"}}
        )
        assert repo.product_id == 9
        assert repo.payload()["product_id"] == 9

    def test_task(self):
        task = ForemanTask.model_validate(load_specimen("task.yaml"))
        assert task.id == "0f2b4c1e-8d1a-4a6f-9d27-5d1f0e6c9a31"
        assert not task.pending
        assert task.result == "success"
        assert task.humanized.action == "Synchronize"
        assert task.humanized.errors == []


class TestQueryResponse:
    def test_generic_results(self):
        data = load_specimen("search_smartproxies.yaml")
        resp = QueryResponse[SmartProxy].model_validate(data)
        assert resp.total == 5
        assert resp.subtotal == 1
        assert resp.sort.by is None
        assert isinstance(resp.results[0], SmartProxy)
        assert resp.results[0].url == "https://proxy.company.com:8443"


class TestConfig:
    def test_provider_config(self):
        cfg = ProviderConfig(server_hostname="foreman.example.com")
        assert cfg.server_protocol == "https"
        assert cfg.location_id == cfg.organization_id == 0
        assert cfg.timeout == 60

        with pytest.raises(ValidationError):
            ProviderConfig(server_hostname="foo", unknown="bar")  # type: ignore

    async def test_foreman_config_is_immutable(self, fcfg: ForemanConfig):
        with pytest.raises(ValidationError):
            fcfg.location_id = 5  # type: ignore
