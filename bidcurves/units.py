from typing import Iterator
import numpy as np
from pint import UnitRegistry, Unit, Quantity

ureg = UnitRegistry(on_redefinition='ignore')

ureg.define("Wh = [energy]")
ureg.define("MWh = 1e6 Wh = MWh")
ureg.define("GWh = 1e9 Wh = GWh")

ureg.define("EUR = [currency]")
ureg.define("EUR_per_Wh = EUR / Wh = [price_for_energy]")
ureg.define("EUR_per_MWh = EUR / MWh")


class _IterableUnitsMeta(type):
    def __iter__(cls) -> Iterator[Unit]:
        return (u for name, u in cls.__dict__.items() if isinstance(u, Unit))


class Units(metaclass=_IterableUnitsMeta):
    _ureg = ureg
    Unit = Unit
    Quantity = Quantity

    Wh = _ureg.Wh
    MWh = _ureg.MWh
    GWh = _ureg.GWh

    EUR = _ureg.EUR
    EUR_per_Wh = _ureg.EUR_per_Wh
    EUR_per_MWh = _ureg.EUR_per_MWh

    BID_VOLUME = MWh
    BID_PRICE = EUR_per_MWh

    _STRING_REPLACEMENTS = {
        '_per_': '/',
        'EUR': '€',
        'nan': 'N/A',
    }

    @classmethod
    def units_have_same_base(cls, unit_1: Unit, unit_2: Unit) -> bool:
        return unit_1.dimensionality == unit_2.dimensionality

    @classmethod
    def get_pretty_text_for_quantity(cls, quantity: Quantity, decimals: int = 2) -> str:
        if np.isnan(quantity.magnitude):
            value_str = 'nan'
        else:
            value_str = f'{quantity.magnitude:,.{decimals}f}'
        pretty_text = f'{value_str} {quantity.units}'
        for r, v in cls._STRING_REPLACEMENTS.items():
            pretty_text = pretty_text.replace(r, v)
        return pretty_text
