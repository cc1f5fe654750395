"""
Testes para o módulo de timezone.
"""
from datetime import datetime, timedelta, timezone

from app.core.timezone import TZ_UTC, agora_utc, para_utc


class TestAgoraUtc:
    """Testes para agora_utc()."""

    def test_retorna_datetime_em_utc(self):
        """agora_utc() deve retornar datetime com tzinfo UTC."""
        assert agora_utc().tzinfo == TZ_UTC

    def test_retorna_horario_proximo_do_agora(self):
        dt1 = datetime.now(timezone.utc)
        dt2 = agora_utc()
        assert abs((dt2 - dt1).total_seconds()) < 1


class TestParaUtc:
    """Testes para para_utc()."""

    def test_naive_assumido_utc(self):
        dt = datetime(2026, 1, 10, 12, 0)
        assert para_utc(dt) == datetime(2026, 1, 10, 12, 0, tzinfo=TZ_UTC)

    def test_converte_outro_fuso(self):
        fuso = timezone(timedelta(hours=-3))
        dt = datetime(2026, 1, 10, 9, 0, tzinfo=fuso)

        convertido = para_utc(dt)

        assert convertido.tzinfo == TZ_UTC
        assert convertido.hour == 12
