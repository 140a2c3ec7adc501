"""HTML document that replays a session event log with rrweb-player."""

import json
from pathlib import Path
from string import Template
from typing import TYPE_CHECKING, Any

from .bridge import EXPOSED_FUNCTIONS, PlaybackSignal
from .events import EventLog

if TYPE_CHECKING:
    from config import RecordingConfig

# Pinned so that dist/index.js and dist/style.css keep their layout
PLAYER_VERSION = "0.7.14"
PLAYER_CDN = f"https://cdn.jsdelivr.net/npm/rrweb-player@{PLAYER_VERSION}/dist"

# rrweb-player's own default size, used for the placeholder surface
DEFAULT_PLAYER_WIDTH = 1024
DEFAULT_PLAYER_HEIGHT = 576

# rrweb refuses to replay fewer events than this
MIN_REPLAY_EVENTS = 2

REPLAY_PAGE = Template("""<html>
  <head>
    $style
  </head>
  <body>
    $script
    <script>
      /*<!--*/
      const events = $events;
      /*-->*/
      const userConfig = $config;
      const onStart = () => window.$on_start();
      const onFinish = () => window.$on_finish();

      async function replayEmpty() {
        // Nothing to replay: show an empty surface and finish right away
        const surface = document.createElement("div");
        surface.className = "$surface_class";
        surface.style.width = "${width}px";
        surface.style.height = "${height}px";
        surface.style.background = "#fff";
        document.body.appendChild(surface);
        await onStart();
        await onFinish();
      }

      function replay() {
        window.replayer = new rrwebPlayer({
          target: document.body,
          props: {
            events,
            showController: false,
            autoPlay: false,
            ...userConfig,
          },
        });
        window.replayer.addEventListener("finish", () => onFinish());

        // Delayed start by default: with autoPlay at speed != 1 the first
        // frames of the replay can render blank
        let start = (fn) => setTimeout(fn, userConfig.startDelayTime);
        if (userConfig.autoPlay) {
          start = (fn) => fn();
        }
        start(() => {
          onStart();
          window.replayer.play();
        });
      }

      if (events.length < $min_events) {
        replayEmpty();
      } else {
        replay();
      }
    </script>
  </body>
</html>
""")


def _script_json(value: Any) -> str:
    """JSON that is safe to embed inside a <script> element."""
    return json.dumps(value, ensure_ascii=False).replace("</", "<\\/")


def _asset_tags(config: "RecordingConfig") -> tuple[str, str]:
    """<style> and <script> tags for rrweb-player, inlined when local."""
    if config.player_style is not None:
        style = f"<style>{Path(config.player_style).read_text(encoding='utf-8')}</style>"
    else:
        style = f'<link rel="stylesheet" href="{PLAYER_CDN}/style.css" />'

    if config.player_script is not None:
        source = Path(config.player_script).read_text(encoding="utf-8")
        source = source.replace("</script>", "<\\/script>")
        script = f"<script>{source};</script>"
    else:
        script = f'<script src="{PLAYER_CDN}/index.js"></script>'
    return style, script


def build_replay_page(event_log: EventLog, config: "RecordingConfig") -> str:
    """Build the replay document for an event log.

    The page calls ``window.onReplayStart`` when playback begins (after
    ``startDelayTime`` ms, or at once with ``autoPlay``) and
    ``window.onReplayFinish`` when rrweb-player reports the end of the
    replay. A log too short to replay signals both immediately.
    """
    style, script = _asset_tags(config)
    player = config.player
    return REPLAY_PAGE.substitute(
        style=style,
        script=script,
        events=_script_json(event_log.events),
        config=_script_json(player.to_props()),
        on_start=EXPOSED_FUNCTIONS[PlaybackSignal.STARTED],
        on_finish=EXPOSED_FUNCTIONS[PlaybackSignal.FINISHED],
        surface_class=config.surface_selector.lstrip("."),
        width=player.width or DEFAULT_PLAYER_WIDTH,
        height=player.height or DEFAULT_PLAYER_HEIGHT,
        min_events=MIN_REPLAY_EVENTS,
    )
