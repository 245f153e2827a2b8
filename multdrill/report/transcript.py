from __future__ import annotations

"""Session transcript and coaching prompt for the text-generation model."""

from typing import Any, Mapping, Sequence

NO_DATA = "Sin datos de sesión."

STRUCTURED_FIELDS = ("resumen_general", "patron_errores", "plan_accion", "sugerencia_entrenamiento")


def format_for_prompt(rows: Sequence[Mapping[str, Any]], stats: Mapping[str, Any]) -> str:
    """Compact history, statistics line and explicit error list.

    ``rows`` are attempt-log dicts (``factor_a``, ``factor_b``, ``is_correct``,
    ``user_input``); ``stats`` is the ``{total, correct, avgTime, accuracy}``
    summary.
    """
    if not rows:
        return NO_DATA

    history = ", ".join(f"{r['factor_a']}x{r['factor_b']}:{'Si' if r['is_correct'] else 'No'}" for r in rows)
    lines = [
        f"Historial: {history}",
        (
            f"ESTADÍSTICAS: Total={stats.get('total', 0)}, Correctas={stats.get('correct', 0)}, "
            f"Precisión={stats.get('accuracy', 0)}%, TiempoPromedio={stats.get('avgTime', 0)}ms"
        ),
    ]
    errors = [r for r in rows if not r["is_correct"]]
    if errors:
        parts = []
        for e in errors:
            answer = e.get("user_input")
            given = "sin respuesta" if answer is None else answer
            parts.append(f"{e['factor_a']}x{e['factor_b']}={int(e['factor_a']) * int(e['factor_b'])}(respondió:{given})")
        lines.append("ERRORES: " + ", ".join(parts))
    return "\n".join(lines)


def build_prompt(data: str, structured: bool = False) -> str:
    prompt = f"""Actúa como un experto en neuroeducación.
Contexto: Usuario entrenando tablas de multiplicar.
Datos: {data}

Instrucciones:
- Responde en 3 párrafos cortos (Máximo 150 palabras total).
- Párrafo 1: Refuerzo positivo del progreso.
- Párrafo 2: Identificación de "puntos de fricción" (ej. tabla del 7).
- Párrafo 3: Prescripción de ejercicios de ESCRITURA MANUAL.

Reglas de Tono y Formato:
1. TONO: Debe ser SIEMPRE positivo, pedagógico y motivador. Nunca uses lenguaje negativo o crítico. Si hay errores, enfócalos como oportunidades de mejora.
2. NO uses emoticones ni emojis.
3. Responde en español."""
    if structured:
        keys = ", ".join(f'"{k}": "..."' for k in STRUCTURED_FIELDS)
        prompt += f"""

Devuelve ESTRICTAMENTE un objeto JSON con esta forma:
{{{keys}}}"""
    return prompt
