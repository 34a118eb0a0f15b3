import logging

from idwheat.diagnostics import LoggingSink, RecordingSink


def test_recording_sink_keeps_order():
    sink = RecordingSink()
    sink.emit('attached', buffer_size=(4, 2))
    sink.emit('matrix_invalid', logging.WARNING, length=3)
    assert sink.names() == ['attached', 'matrix_invalid']
    (event,) = sink.find('matrix_invalid')
    assert event.level == logging.WARNING
    assert event.fields == {'length': 3}
    sink.clear()
    assert sink.events == []


def test_logging_sink_formats_fields(caplog):
    sink = LoggingSink(logging.getLogger('idwheat.test'))
    with caplog.at_level(logging.DEBUG, logger='idwheat.test'):
        sink.emit('buffer_resized', width=10, height=5)
        sink.emit('detached')
    assert caplog.records[0].getMessage() == 'buffer_resized | width=10 | height=5'
    assert caplog.records[1].getMessage() == 'detached'


def test_logging_sink_respects_level(caplog):
    sink = LoggingSink(logging.getLogger('idwheat.test.quiet'))
    with caplog.at_level(logging.WARNING, logger='idwheat.test.quiet'):
        sink.emit('frame_skipped', logging.DEBUG, stage='draw')
        sink.emit('no_samples', logging.WARNING)
    assert [r.getMessage() for r in caplog.records] == ['no_samples']

