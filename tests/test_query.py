import pytest
import respx
from httpx import Response

import tfforeman.crud as crud
import tfforeman.query as query
import tfforeman.resources as resources
from tfforeman.errors import CardinalityError, DecodeError
from tfforeman.models import (
    ForemanConfig,
    KatelloRepository,
    ProvisioningTemplate,
    SmartProxy,
)

from .conftest import load_specimen


def envelope(results, subtotal=None, page=1, per_page=2):
    return {
        "total": 10,
        "subtotal": len(results) if subtotal is None else subtotal,
        "page": page,
        "per_page": per_page,
        "search": None,
        "sort": {"by": None, "order": None},
        "results": results,
    }


class TestSearchString:
    def test_only_explicitly_set_fields(self):
        kind = resources.SMART_PROXY
        assert query.search_string(kind, SmartProxy()) == ""
        assert query.search_string(kind, SmartProxy(name="a")) == 'name="a"'

        # Zero values are valid predicates if the caller set them.
        ret = query.search_string(kind, SmartProxy(name="a", url=""))
        assert ret == 'name="a" and url=""'

    def test_non_searchable_fields_are_ignored(self):
        item = SmartProxy(id=5, name="a")
        assert query.search_string(resources.SMART_PROXY, item) == 'name="a"'

    def test_value_types(self):
        item = ProvisioningTemplate(name='say "hi"', snippet=True, locked=False)
        ret = query.search_string(resources.PROVISIONING_TEMPLATE, item)
        assert ret == 'name="say \\"hi\\"" and snippet=true and locked=false'

        item = KatelloRepository(product_id=9)
        ret = query.search_string(resources.KATELLO_REPOSITORY, item)
        assert ret == "product_id=9"

        # `None` means "not set".
        item = KatelloRepository(name="a", product_id=None)
        ret = query.search_string(resources.KATELLO_REPOSITORY, item)
        assert ret == 'name="a"'


class TestQueryMocked:
    async def test_query(self, fcfg: ForemanConfig):
        specimen = load_specimen("search_smartproxies.yaml")
        m_http = respx.get("/api/smart_proxies")
        m_http.return_value = Response(200, json=specimen)

        item = SmartProxy(name="proxy.company.com")
        ret = await query.query(fcfg, resources.SMART_PROXY, item, per_page=2)
        assert ret.subtotal == 1
        assert ret.results == [SmartProxy.from_response(specimen["results"][0])]
        assert isinstance(ret.results[0], SmartProxy)

        params = m_http.calls.last.request.url.params
        assert params["search"] == 'name="proxy.company.com"'
        assert params["page"] == "1"
        assert params["per_page"] == "2"

    async def test_query_without_predicates(self, fcfg: ForemanConfig):
        m_http = respx.get("/api/smart_proxies")
        m_http.return_value = Response(200, json=envelope([]))

        await query.query(fcfg, resources.SMART_PROXY, SmartProxy())
        params = m_http.calls.last.request.url.params
        assert "search" not in params
        assert params["per_page"] == str(fcfg.per_page)

    @pytest.mark.parametrize("body", [[], {"results": "foo"}, {"subtotal": "many"}])
    async def test_query_invalid_envelope(self, body, fcfg: ForemanConfig):
        respx.get("/api/smart_proxies").return_value = Response(200, json=body)
        with pytest.raises(DecodeError):
            await query.query(fcfg, resources.SMART_PROXY, SmartProxy())

    async def test_query_one(self, fcfg: ForemanConfig):
        specimen = load_specimen("search_smartproxies.yaml")
        m_http = respx.get("/api/smart_proxies")
        m_http.return_value = Response(200, json=specimen)

        item = SmartProxy(name="proxy.company.com")
        ret = await query.query_one(fcfg, resources.SMART_PROXY, item)
        assert ret.id == 42

    async def test_query_one_none(self, fcfg: ForemanConfig):
        respx.get("/api/smart_proxies").return_value = Response(200, json=envelope([]))

        with pytest.raises(CardinalityError) as err:
            await query.query_one(fcfg, resources.SMART_PROXY, SmartProxy(name="x"))
        assert err.value.actual == 0
        assert str(err.value) == "Data source smart proxy returned no results"

    async def test_query_one_duplicate(self, fcfg: ForemanConfig):
        results = [{"id": 1, "name": "duplicate"}, {"id": 2, "name": "duplicate"}]
        m_http = respx.get("/api/smart_proxies")
        m_http.return_value = Response(200, json=envelope(results, subtotal=2))

        with pytest.raises(CardinalityError) as err:
            await query.query_one(fcfg, resources.SMART_PROXY, SmartProxy(name="dup"))
        assert (err.value.expected, err.value.actual) == (1, 2)
        assert "returned more than 1 result" in str(err.value)

    async def test_query_one_uses_subtotal(self, fcfg: ForemanConfig):
        """One result on the page is not enough if more match overall."""
        m_http = respx.get("/api/smart_proxies")
        m_http.return_value = Response(
            200, json=envelope([{"id": 1, "name": "a"}], subtotal=3)
        )

        with pytest.raises(CardinalityError):
            await query.query_one(fcfg, resources.SMART_PROXY, SmartProxy(name="a"))

        # A single request must suffice.
        assert m_http.call_count == 1

    async def test_query_all(self, fcfg: ForemanConfig):
        pages = [
            envelope([{"id": 1}, {"id": 2}], subtotal=5, page=1),
            envelope([{"id": 3}, {"id": 4}], subtotal=5, page=2),
            envelope([{"id": 5}], subtotal=5, page=3),
        ]
        m_http = respx.get("/api/smart_proxies")
        m_http.side_effect = [Response(200, json=_) for _ in pages]

        ret = await query.query_all(fcfg, resources.SMART_PROXY, SmartProxy())
        assert [_.id for _ in ret.results] == [1, 2, 3, 4, 5]
        assert ret.subtotal == 5
        assert m_http.call_count == 3

        requested = [_.request.url.params["page"] for _ in m_http.calls]
        assert requested == ["1", "2", "3"]

    async def test_query_all_stops_on_empty_page(self, fcfg: ForemanConfig):
        """Entities may disappear while we iterate over the pages."""
        pages = [
            envelope([{"id": 1}, {"id": 2}], subtotal=5, page=1),
            envelope([], subtotal=2, page=2),
        ]
        m_http = respx.get("/api/smart_proxies")
        m_http.side_effect = [Response(200, json=_) for _ in pages]

        ret = await query.query_all(fcfg, resources.SMART_PROXY, SmartProxy())
        assert [_.id for _ in ret.results] == [1, 2]
        assert m_http.call_count == 2


class TestQueryFakeman:
    async def create_proxies(self, fakecfg: ForemanConfig, *names: str):
        for name in names:
            item = SmartProxy(name=name, url=f"https://{name}:8443")
            await crud.create(fakecfg, resources.SMART_PROXY, item)

    async def test_exactly_one(self, fakecfg: ForemanConfig):
        await self.create_proxies(fakecfg, "proxy.company.com", "other.company.com")

        item = SmartProxy(name="proxy.company.com")
        ret = await query.query(fakecfg, resources.SMART_PROXY, item)
        assert ret.subtotal == 1
        assert ret.total == 2
        assert ret.results[0].url == "https://proxy.company.com:8443"

        one = await query.query_one(fakecfg, resources.SMART_PROXY, item)
        assert one == ret.results[0]

    async def test_quoted_separator(self, fakecfg: ForemanConfig):
        """Values may contain the ` and ` that joins the predicates."""
        await self.create_proxies(fakecfg, "dev and test", "dev")

        item = SmartProxy(name="dev and test")
        one = await query.query_one(fakecfg, resources.SMART_PROXY, item)
        assert one.name == "dev and test"

        item = SmartProxy(name="dev and test", url="https://dev and test:8443")
        one = await query.query_one(fakecfg, resources.SMART_PROXY, item)
        assert one.name == "dev and test"

    async def test_zero(self, fakecfg: ForemanConfig):
        await self.create_proxies(fakecfg, "proxy.company.com")

        item = SmartProxy(name="unknown")
        ret = await query.query(fakecfg, resources.SMART_PROXY, item)
        assert ret.subtotal == 0
        assert ret.results == []

    async def test_duplicate(self, fakecfg: ForemanConfig):
        await self.create_proxies(fakecfg, "duplicate", "duplicate", "other")

        item = SmartProxy(name="duplicate")
        ret = await query.query(fakecfg, resources.SMART_PROXY, item)
        assert ret.subtotal == 2

        with pytest.raises(CardinalityError) as err:
            await query.query_one(fakecfg, resources.SMART_PROXY, item)
        assert "returned more than 1 result" in str(err.value)

    async def test_pagination(self, fakecfg: ForemanConfig):
        """Page size is 3, so 7 matches span three pages."""
        names = [f"proxy-{_}" for _ in range(7)]
        await self.create_proxies(fakecfg, *names)

        ret = await query.query(fakecfg, resources.SMART_PROXY, SmartProxy())
        assert ret.subtotal == 7
        assert len(ret.results) == 3

        ret = await query.query_all(fakecfg, resources.SMART_PROXY, SmartProxy())
        assert ret.subtotal == 7
        assert [_.name for _ in ret.results] == names
