import pytest

from pressrun.exceptions import FeatureDisabledError
from pressrun.models import FeatureFlag
from pressrun.services.feature_gate import INVENTORY_FEATURE, FeatureGateService

from .conftest import TENANT_ID


class TestFeatureGate:

    def test_config_default_applies_without_rows(self, app):
        assert FeatureGateService.inventory_enabled(TENANT_ID) is True
        assert FeatureGateService.is_enabled(TENANT_ID, 'labels.enabled') is False

    def test_global_row_overrides_default(self, app):
        FeatureGateService.set_flag(INVENTORY_FEATURE, False)

        assert FeatureGateService.inventory_enabled(TENANT_ID) is False
        assert FeatureGateService.inventory_enabled(None) is False

    def test_tenant_row_overrides_global(self, app):
        FeatureGateService.set_flag(INVENTORY_FEATURE, False)
        FeatureGateService.set_flag(INVENTORY_FEATURE, True, tenant_id=TENANT_ID)

        assert FeatureGateService.inventory_enabled(TENANT_ID) is True
        assert FeatureGateService.inventory_enabled('tenant-2') is False

    def test_set_flag_updates_existing_row(self, app):
        FeatureGateService.set_flag(INVENTORY_FEATURE, False, tenant_id=TENANT_ID)
        FeatureGateService.set_flag(INVENTORY_FEATURE, True, tenant_id=TENANT_ID, description='pilot')

        flag = FeatureFlag.query.one()
        assert (flag.enabled, flag.description) == (True, 'pilot')

    def test_require_raises_when_disabled(self, app):
        FeatureGateService.set_flag(INVENTORY_FEATURE, False, tenant_id=TENANT_ID)

        with pytest.raises(FeatureDisabledError) as exc_info:
            FeatureGateService.require(TENANT_ID, INVENTORY_FEATURE)

        assert exc_info.value.to_dict() == {'code': 'FEATURE_DISABLED', 'feature': INVENTORY_FEATURE}
