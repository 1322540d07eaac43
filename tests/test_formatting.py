## awwforth — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from awwforth.runtime import Engine
from awwforth.formatting import (format_value, format_stack, format_dictionary, format_memory_map, format_devices,
                                 write_without_ansi, show_stack)
from awwforth.types import Port


class Lamp:
    namespace = "lamp"
    description = "A single light."
    ports = (Port("on", 1, "readwrite"),)

    def initialize(self, binding): self.binding = binding
    def cleanup(self): self.binding.close()


def test_integral_floats_print_as_integers():
    assert format_value(4.0) == "4"
    assert format_value(2.5) == "2.5"
    assert format_stack([1, 2.0]) == "1 2 ← Top "


def test_dictionary_listing_marks_permanent_words():
    engine = Engine()
    engine.read_line("~ twin is dup")
    listing = write_without_ansi(lambda text: text)(format_dictionary(engine.get_dictionary()))
    assert "twin" in listing and "native dup ~" in listing
    assert "control if" in listing


def test_memory_map_lists_blocks_and_free_space():
    engine = Engine()
    engine.read_line("variable counter 7 counter !")
    listing = format_memory_map(engine.get_memory())
    assert any(line.split()[:1] == ["counter"] and line.split()[-1] == "7" for line in listing.splitlines())
    assert "cell(s) left" in listing


def test_devices_listing():
    engine = Engine()
    assert "no devices" in format_devices(engine.devices.describe())
    engine.attach_device(Lamp()).binding.set("on", 1)
    listing = write_without_ansi(lambda text: text)(format_devices(engine.devices.describe()))
    assert "lamp A single light." in listing
    assert "readwrite" in listing


def test_show_stack_truncates_from_the_left(capsys):
    show_stack(list(range(40)), width=20)
    shown = capsys.readouterr().out.rstrip('\n')
    assert shown.startswith('… ') and shown.endswith('39')
    show_stack([], width=None)
    assert capsys.readouterr().out == "∅\n"
