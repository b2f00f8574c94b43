from focus_flow.signals import FullscreenMonitor, VisibilityMonitor


class Toggle:
    def __init__(self, value):
        self.value = value

    def __call__(self):
        return self.value


def test_initial_state_sampled_on_creation():
    assert VisibilityMonitor(probe=lambda: False).active is False
    assert FullscreenMonitor("focus-view", probe=lambda: True).in_fullscreen is True


def test_defaults_without_probe():
    assert VisibilityMonitor().active is True
    monitor = FullscreenMonitor("focus-view")
    assert monitor.in_fullscreen is False
    assert monitor.region == "focus-view"


def test_unknown_probe_result_keeps_last_value():
    probe = Toggle(None)
    monitor = VisibilityMonitor(probe=probe)
    assert monitor.active is True
    seen = []
    monitor.subscribe(seen.append)
    assert monitor.poll() is False
    assert seen == []


def test_poll_emits_only_on_edges():
    probe = Toggle(True)
    monitor = VisibilityMonitor(probe=probe)
    seen = []
    monitor.subscribe(seen.append)

    monitor.poll()
    monitor.poll()
    probe.value = False
    monitor.poll()
    monitor.poll()
    probe.value = True
    monitor.poll()

    assert seen == [False, True]


def test_push_same_value_is_silent():
    monitor = FullscreenMonitor("focus-view")
    seen = []
    monitor.subscribe(seen.append)
    assert monitor.push(False) is False
    assert monitor.push(True) is True
    assert seen == [True]


def test_unsubscribe_stops_delivery():
    monitor = VisibilityMonitor()
    seen = []
    unsubscribe = monitor.subscribe(seen.append)
    monitor.push(False)
    unsubscribe()
    monitor.push(True)
    assert seen == [False]
    # Unsubscribing twice is harmless.
    monitor.unsubscribe(seen.append)


def test_failing_probe_is_treated_as_unknown():
    def broken():
        raise OSError("no display")

    monitor = VisibilityMonitor(probe=broken)
    assert monitor.active is True
    assert monitor.poll() is False
