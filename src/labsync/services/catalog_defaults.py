"""Embedded default catalog and alias table.

The default catalog is served when the backend is unreachable or returns an
empty catalog. The alias table maps the short names used in links (``led``,
``uart``) to canonical catalog ids. Both live only here.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

from labsync.shared.models import CatalogRecord

_DEFAULT_TEMPLATES: tuple[dict[str, Any], ...] = (
    # GPIO
    {
        "id": "2",
        "name": "STM32F103 LED Basics",
        "project_name": "03-1 STM32F103_LED",
        "category": "basic",
        "difficulty": 1,
        "duration": 45,
        "description": "Configure GPIO pins and drive an LED",
        "learning_objectives": [
            "Configure GPIO",
            "Understand LED drive circuits",
            "Write basic control code",
        ],
        "order_index": 1,
    },
    {
        "id": "3",
        "name": "STM32F103 LED Blink",
        "project_name": "03-2 STM32F103_LEDBlink",
        "category": "basic",
        "difficulty": 1,
        "duration": 50,
        "description": "Blink an LED periodically",
        "learning_objectives": [
            "Use delays",
            "Toggle output state",
            "Structure a main loop",
        ],
        "order_index": 2,
    },
    {
        "id": "4",
        "name": "STM32F103 LED Banner",
        "project_name": "03-3 STM32F103_LEDBanner",
        "category": "basic",
        "difficulty": 1,
        "duration": 55,
        "description": "Run a chaser pattern across several LEDs",
        "learning_objectives": [
            "Drive multiple GPIO pins",
            "Iterate over pin arrays",
            "Control timing",
        ],
        "order_index": 3,
    },
    {
        "id": "5",
        "name": "STM32F103 LED Breathing",
        "project_name": "03-4 STM32F103_LEDBreath",
        "category": "basic",
        "difficulty": 2,
        "duration": 65,
        "description": "Fade an LED in and out with PWM",
        "learning_objectives": [
            "Generate PWM",
            "Control duty cycle",
            "Approximate analog output",
        ],
        "order_index": 4,
    },
    # Input handling
    {
        "id": "7",
        "name": "STM32F103 Key Scan",
        "project_name": "03-5 STM32F103_KEYScan",
        "category": "basic",
        "difficulty": 1,
        "duration": 50,
        "description": "Poll push buttons with software debouncing",
        "learning_objectives": [
            "Read digital inputs",
            "Debounce in software",
            "Scan by polling",
        ],
        "order_index": 5,
    },
    {
        "id": "6",
        "name": "STM32F103 Key Interrupt",
        "project_name": "03-6 STM32F103_KEYInt",
        "category": "basic",
        "difficulty": 1,
        "duration": 60,
        "description": "Handle button presses with external interrupts",
        "learning_objectives": [
            "Configure external interrupts",
            "Write interrupt service routines",
            "Respond in real time",
        ],
        "order_index": 6,
    },
    # Timers
    {
        "id": "8",
        "name": "STM32F103 Timer Basics",
        "project_name": "04-1 STM32F103_TIMBase",
        "category": "intermediate",
        "difficulty": 2,
        "duration": 60,
        "description": "Configure and use a basic timer",
        "learning_objectives": [
            "Configure timers",
            "Keep precise time",
            "Handle timer interrupts",
        ],
        "order_index": 7,
    },
    {
        "id": "11",
        "name": "STM32F103 Timer PWM",
        "project_name": "05-1 STM32F103_TIMPWM",
        "category": "intermediate",
        "difficulty": 2,
        "duration": 75,
        "description": "Generate PWM signals with a timer",
        "learning_objectives": [
            "Use PWM mode",
            "Control frequency",
            "Adjust duty cycle",
        ],
        "order_index": 8,
    },
    # Communication
    {
        "id": "9",
        "name": "STM32F103 UART",
        "project_name": "06-1 STM32F103_UART",
        "category": "intermediate",
        "difficulty": 2,
        "duration": 80,
        "description": "Send and receive data over a UART",
        "learning_objectives": [
            "Configure a UART",
            "Transmit and receive bytes",
            "Debug serial links",
        ],
        "order_index": 9,
    },
    {
        "id": "10",
        "name": "STM32F103 UART Interrupt I/O",
        "project_name": "06-2 STM32F103_UART_TransRecvInt",
        "category": "intermediate",
        "difficulty": 2,
        "duration": 85,
        "description": "Interrupt-driven UART transmit and receive",
        "learning_objectives": [
            "Use interrupt-driven I/O",
            "Manage buffers",
            "Communicate efficiently",
        ],
        "order_index": 10,
    },
    # Analog
    {
        "id": "12",
        "name": "STM32F103 ADC",
        "project_name": "07-1 STM32F103_ADC",
        "category": "advanced",
        "difficulty": 3,
        "duration": 90,
        "description": "Sample analog inputs with the ADC",
        "learning_objectives": [
            "Configure the ADC",
            "Sample analog signals",
            "Convert raw readings",
        ],
        "order_index": 11,
    },
    {
        "id": "13",
        "name": "STM32F103 ADC Gas Sensor",
        "project_name": "07-2 STM32F103_ADCMQ2",
        "category": "advanced",
        "difficulty": 3,
        "duration": 95,
        "description": "Read an MQ2 gas sensor through the ADC",
        "learning_objectives": [
            "Interface sensors",
            "Condition signals",
            "Process readings",
        ],
        "order_index": 12,
    },
    {
        "id": "14",
        "name": "STM32F103 DAC Voltage Output",
        "project_name": "08-1 STM32F103_DACVoltageOut",
        "category": "advanced",
        "difficulty": 3,
        "duration": 80,
        "description": "Output a voltage with the DAC",
        "learning_objectives": [
            "Configure the DAC",
            "Produce a voltage",
            "Control precision",
        ],
        "order_index": 13,
    },
    {
        "id": "15",
        "name": "STM32F103 DAC Waveforms",
        "project_name": "08-2 STM32F103_DACWave",
        "category": "advanced",
        "difficulty": 3,
        "duration": 90,
        "description": "Generate waveforms with the DAC and DMA",
        "learning_objectives": [
            "Generate waveforms",
            "Apply DMA",
            "Synthesize signals",
        ],
        "order_index": 14,
    },
    # Display
    {
        "id": "16",
        "name": "STM32F103 LCD",
        "project_name": "13-1 STM32F103_LCD",
        "category": "intermediate",
        "difficulty": 2,
        "duration": 70,
        "description": "Drive an LCD1602 character display",
        "learning_objectives": [
            "Write an LCD driver",
            "Display characters",
            "Respect interface timing",
        ],
        "order_index": 15,
    },
    # Projects
    {
        "id": "17",
        "name": "Smart Environment Monitor",
        "project_name": "09-1 STM32F103_SmartEcoWatch",
        "category": "project",
        "difficulty": 3,
        "duration": 120,
        "description": "Combine several sensors into an environment monitor",
        "learning_objectives": [
            "Integrate a system",
            "Combine multiple sensors",
            "Implement smart control",
        ],
        "order_index": 16,
    },
    {
        "id": "18",
        "name": "Automatic Parking",
        "project_name": "10-1 STM32F103_AutoPark",
        "category": "project",
        "difficulty": 3,
        "duration": 150,
        "description": "Park a smart car automatically",
        "learning_objectives": [
            "Apply automatic control",
            "Plan paths",
            "Fuse sensor data",
        ],
        "order_index": 17,
    },
    {
        "id": "19",
        "name": "Fitness Band",
        "project_name": "11-1 STM32F103_FitBand",
        "category": "project",
        "difficulty": 3,
        "duration": 140,
        "description": "Build the core features of a fitness band",
        "learning_objectives": [
            "Capture biosignals",
            "Analyze data",
            "Monitor health metrics",
        ],
        "order_index": 18,
    },
    {
        "id": "20",
        "name": "Optical Tracker",
        "project_name": "12-1 STM32F103_OptiTracer",
        "category": "project",
        "difficulty": 3,
        "duration": 130,
        "description": "Track an optical target in real time",
        "learning_objectives": [
            "Detect optical targets",
            "Follow trajectories",
            "Process data in real time",
        ],
        "order_index": 19,
    },
)

DEFAULT_CATALOG: tuple[CatalogRecord, ...] = tuple(
    CatalogRecord.model_validate(template) for template in _DEFAULT_TEMPLATES
)

ALIASES: Mapping[str, str] = MappingProxyType(
    {
        # GPIO
        "led": "2",
        "ledblink": "3",
        "ledbanner": "4",
        "ledbreath": "5",
        # Input handling
        "keyscan": "7",
        "keyint": "6",
        # Timers
        "timbase": "8",
        "timpwm": "11",
        # Communication
        "uart": "9",
        "uart_transrecvint": "10",
        # Analog
        "adc": "12",
        "adcmq2": "13",
        "dacvoltageout": "14",
        "dacwave": "15",
        # Display
        "lcd": "16",
        # Projects
        "smartecowatch": "17",
        "autopark": "18",
        "fitband": "19",
        "optitracer": "20",
    },
)

_DEFAULTS_BY_ID: Mapping[str, CatalogRecord] = MappingProxyType(
    {record.id: record for record in DEFAULT_CATALOG},
)


def default_catalog() -> tuple[CatalogRecord, ...]:
    return DEFAULT_CATALOG


def default_record(record_id: str) -> CatalogRecord | None:
    """Return the embedded default record with ``record_id``, if any."""
    return _DEFAULTS_BY_ID.get(record_id)


def alias_to_id(alias: str) -> str | None:
    """Map a link alias to its catalog id; lookup is case-insensitive."""
    return ALIASES.get(alias.strip().lower())


__all__ = [
    "ALIASES",
    "DEFAULT_CATALOG",
    "alias_to_id",
    "default_catalog",
    "default_record",
]
