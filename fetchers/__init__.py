# fetchers/__init__.py
from core.models import ProviderId

from . import brightdata
from . import direct
from . import registry_api
from . import scraperapi

PROVIDERS = {
    ProviderId.DIRECT: direct.PROVIDER,
    ProviderId.RENDERING_PROXY: scraperapi.PROVIDER,
    ProviderId.UNLOCKER: brightdata.PROVIDER,
    ProviderId.REGISTRY_API: registry_api.PROVIDER,
}
