"""
Tariff table calculator.

Formula: amount = clamp(rate(reservations) x reservations + fixed fee)

Rate selection:
- Full house (reservations >= capacity): tarifaFullHouse
- Otherwise the first tier, in ascending threshold order, whose
  numeroReservas covers the reservations
- No tier covers them: tarifaFullHouse, flagged as a default

Clamps run in fixed order: guaranteed minimum first, then maximum. A
maximum set below the minimum therefore wins. The bonus is computed per
reservation and reported only; it is never part of the amount.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple
import logging

from models.formula import ParametrosPago

logger = logging.getLogger(__name__)

FULL_HOUSE = "Full House"
FULL_HOUSE_DEFAULT = "Full House (por defecto)"


@dataclass
class TariffOutcome:
    """Result of applying a tariff table to one class."""
    monto: Decimal
    tarifa_aplicada: Decimal
    tipo_tarifa: str
    es_full_house: bool
    monto_base: Decimal
    cuota_fija_aplicada: Decimal = Decimal("0")
    minimo_aplicado: bool = False
    maximo_aplicado: bool = False
    bono_aplicado: Optional[Decimal] = None
    detalle: List[str] = field(default_factory=list)


def _money(value: Decimal) -> str:
    return f"S/.{value:.2f}"


class TariffCalculator:
    """
    Applies one category's ParametrosPago to a reservation count.

    Usage:
        outcome = TariffCalculator(parametros).calculate(
            reservaciones=Decimal("20"), capacidad=Decimal("50")
        )
    """

    def __init__(self, parametros: ParametrosPago):
        self.parametros = parametros

    def select_rate(self, reservaciones: Decimal, capacidad: Decimal) -> Tuple[Decimal, str]:
        """
        Pick the rate for the observed reservations.

        Returns:
            (rate, tipoTarifa label)
        """
        if reservaciones >= capacidad:
            return self.parametros.tarifa_full_house, FULL_HOUSE

        tiers = sorted(self.parametros.tarifas, key=lambda t: t.numero_reservas)
        for tier in tiers:
            if reservaciones <= tier.numero_reservas:
                return tier.tarifa, f"Hasta {tier.numero_reservas} reservas"

        logger.warning(
            f"Tariff tiers exhausted: {reservaciones} reservations exceed every threshold "
            f"below capacity {capacidad}; falling back to full house rate"
        )
        return self.parametros.tarifa_full_house, FULL_HOUSE_DEFAULT

    def calculate(self, reservaciones: Decimal, capacidad: Decimal) -> TariffOutcome:
        """
        Calculate the clamped class payment.

        Args:
            reservaciones: Reservations counted for the class
            capacidad: Seats available in the class

        Returns:
            TariffOutcome with the amount, the selected rate and clamp flags
        """
        p = self.parametros
        tarifa, tipo = self.select_rate(reservaciones, capacidad)
        detalle = [f"Tarifa: {tipo} ({_money(tarifa)} por reserva)"]

        monto_base = tarifa * reservaciones
        monto = monto_base
        detalle.append(f"{reservaciones} reservas × {_money(tarifa)} = {_money(monto_base)}")

        cuota_fija = Decimal("0")
        if p.cuota_fija > 0:
            cuota_fija = p.cuota_fija
            monto += cuota_fija
            detalle.append(f"Cuota fija: +{_money(cuota_fija)} (subtotal {_money(monto)})")

        minimo_aplicado = False
        if p.minimo_garantizado > 0 and monto < p.minimo_garantizado:
            minimo_aplicado = True
            monto = p.minimo_garantizado
            detalle.append(f"Se aplicó el mínimo garantizado: {_money(p.minimo_garantizado)}")

        maximo_aplicado = False
        if p.maximo is not None and monto > p.maximo:
            maximo_aplicado = True
            monto = p.maximo
            detalle.append(f"Se aplicó el máximo: {_money(p.maximo)}")

        bono_aplicado = None
        if p.bono > 0:
            bono_aplicado = p.bono * reservaciones
            detalle.append(f"Bono (no incluido en el monto): {_money(bono_aplicado)}")

        logger.debug(
            f"Tariff: reservations={reservaciones}, capacity={capacidad}, "
            f"rate={tarifa} ({tipo}), base={monto_base}, amount={monto}, "
            f"min_applied={minimo_aplicado}, max_applied={maximo_aplicado}"
        )

        return TariffOutcome(
            monto=monto,
            tarifa_aplicada=tarifa,
            tipo_tarifa=tipo,
            es_full_house=tipo == FULL_HOUSE,
            monto_base=monto_base,
            cuota_fija_aplicada=cuota_fija,
            minimo_aplicado=minimo_aplicado,
            maximo_aplicado=maximo_aplicado,
            bono_aplicado=bono_aplicado,
            detalle=detalle,
        )
