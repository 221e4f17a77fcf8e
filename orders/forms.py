# orders/forms.py
from django import forms

from .exceptions import GatewayConfigInvalid, GatewayNotImplemented
from .gateways import registry
from .models import Gateway


class GatewayAdminForm(forms.ModelForm):
    """
    Mostra o plugin como lista de chaves registradas e valida o config com o
    próprio plugin antes de salvar.
    """
    plugin = forms.ChoiceField(label="Plugin", choices=())

    class Meta:
        model = Gateway
        fields = ("name", "plugin", "config")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["plugin"].choices = [(item["key"], f'{item["key"]} ({item["label"]})') for item in registry.describe()]

    def clean(self):
        cleaned = super().clean()
        plugin = cleaned.get("plugin")
        config = cleaned.get("config")
        if not plugin:
            return cleaned
        if config is None:
            config = cleaned["config"] = {}

        try:
            registry.check_config(plugin, config)
        except GatewayNotImplemented as e:
            self.add_error("plugin", str(e.detail))
        except GatewayConfigInvalid as e:
            self.add_error("config", "; ".join(str(msg) for msg in e.detail))
        return cleaned
