"""
app.py - Streamlit Entrypoint for the Clock Call Kiosk

Pinch the clock hands in front of the camera to set the time. At the right
time somebody calls; listen, then set the clock again to unlock the memory.
"""

import logging
import os

import streamlit as st
from dotenv import load_dotenv
from streamlit_webrtc import WebRtcMode, webrtc_streamer

from audio_manager import MediaManager
from clock_face import render_clock
from hand_pointer import CallAudioProcessor, HandPointerProcessor
from kiosk import SUCCESS_ROUTE, Kiosk
from kiosk_config import load_kiosk_config
from kiosk_state import KioskInbox
from screens import Screen, ScreenAction

load_dotenv()
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CONFIG = load_kiosk_config()
DEV_MODE = os.environ.get("DEV_MODE", "false").lower() == "true"


# =============================================================================
# PAGE CONFIG
# =============================================================================

st.set_page_config(
    page_title="Clock Call Kiosk",
    page_icon="🕑",
    layout="wide",
    initial_sidebar_state="collapsed"
)

st.markdown("""
<style>
    body { font-family: sans-serif; }
    .stVideo { border: 2px solid #333; }
    h1 { color: #333; }
</style>
""", unsafe_allow_html=True)


# =============================================================================
# SESSION
# =============================================================================

def _navigate(route: str):
    st.session_state.route = route


def get_kiosk() -> Kiosk:
    """One kiosk per browser session; a reload starts over"""
    if "kiosk" not in st.session_state:
        inbox = KioskInbox()
        media = MediaManager(CONFIG, camera_source=inbox.latest_frame)
        st.session_state.kiosk = Kiosk(CONFIG, media, navigate=_navigate, inbox=inbox)
        st.session_state.route = "home"
    return st.session_state.kiosk


kiosk = get_kiosk()


# =============================================================================
# SUCCESS VIEW
# =============================================================================

if st.session_state.get("route") == SUCCESS_ROUTE:
    # The session is over; release whatever media is still held
    kiosk.dispose()
    st.markdown("# 🎉 Success!")
    st.markdown("### You have unlocked part of your friend's memory!")
    st.stop()


# =============================================================================
# MAIN UI
# =============================================================================

st.markdown("# 🕑 Clock Call Kiosk")

with st.expander("📖 How to play", expanded=False):
    st.markdown("""
    - Pinch your **thumb and index finger** over a clock hand to grab it.
    - The inner part of the dial moves the **hour** hand, the outer ring the **minute** hand.
    - Open your fingers to let go.
    - Set the right time and wait for the call...
    """)

video_col, panel_col = st.columns([3, 2])

with video_col:
    st.markdown("### 📹 Pointer Zone")
    webrtc_streamer(
        key="kiosk-pointer",
        mode=WebRtcMode.SENDRECV,
        video_processor_factory=lambda: HandPointerProcessor(kiosk.inbox, CONFIG),
        audio_processor_factory=lambda: CallAudioProcessor(kiosk.media),
        media_stream_constraints={
            "video": {
                "width": {"ideal": 640},
                "height": {"ideal": 480},
                "frameRate": {"ideal": 30}
            },
            "audio": True
        },
        async_processing=True,
        rtc_configuration={
            "iceServers": [{"urls": ["stun:stun.l.google.com:19302"]}]
        }
    )


@st.fragment(run_every=CONFIG.tick_interval_sec)
def kiosk_panel():
    kiosk.tick()
    if st.session_state.get("route") == SUCCESS_ROUTE:
        st.rerun()

    screen = kiosk.screen()
    st.markdown(f"## {screen.title}")
    if screen.subtitle:
        st.markdown(f"*{screen.subtitle}*")
    if screen.duration_text:
        st.markdown(f"### ⏱️ {screen.duration_text}")
    if screen.error:
        st.error(screen.error)

    if screen.show_clock:
        size = 480 if screen.screen is Screen.CLOCK else 240
        st.image(render_clock(kiosk.clock_time, size=size,
                              show_seconds=not kiosk.ticker.manual,
                              active_hand=kiosk.gestures.session.active_hand))

    if screen.show_camera:
        camera = kiosk.machine.camera_handle()
        frame = camera.latest_frame() if camera else None
        if frame is not None:
            st.image(frame, channels="BGR", caption="You", width=240)

    if screen.screen is Screen.ACTIVE:
        participant = kiosk.machine.participant
        if participant.video_on and os.path.exists(participant.image):
            st.image(participant.image, caption=participant.name, width=320)
        else:
            st.markdown(f"### {participant.avatar}")

    if screen.screen is Screen.RECORDING:
        playback = kiosk.machine.snapshot()
        if playback.playback_length > 0:
            target = st.slider("Seek (s)", 0.0, float(playback.playback_length), 0.0,
                               step=1.0, key="recording-seek")
            if st.button("⏩ Jump", key="recording-jump"):
                kiosk.seek(target)
                st.rerun(scope="fragment")

    for action in screen.actions:
        danger = action in (ScreenAction.DECLINE, ScreenAction.END_CALL)
        if st.button(action.value, key=f"action-{action.name}",
                     type="secondary" if danger else "primary"):
            kiosk.perform(action)
            st.rerun(scope="fragment")


with panel_col:
    kiosk_panel()


# =============================================================================
# DEV MODE
# =============================================================================

if DEV_MODE:
    st.sidebar.markdown("## 🔧 Dev Mode Active")

    if st.sidebar.button("🔄 Reset State"):
        kiosk.inbox.request_reset()
        st.session_state.route = "home"
        st.sidebar.success("State reset!")

    if st.sidebar.button("🔔 Force Ring"):
        kiosk.inbox.set_trigger_ring()
        st.sidebar.warning("Triggering call...")

    st.sidebar.markdown("---")
    st.sidebar.markdown("### Manual Override")

    manual_time = st.sidebar.text_input("Set Clock Time (HH:MM)", value="02:00")
    if st.sidebar.button("⚡ Set Time"):
        try:
            h, m = map(int, manual_time.split(':'))
            if not (0 <= h <= 23 and 0 <= m <= 59):
                raise ValueError(manual_time)
            kiosk.set_time(h, m)
            st.sidebar.success(f"Clock set to {h:02d}:{m:02d}")
        except ValueError:
            st.sidebar.error("Invalid format! Use HH:MM")

    if st.sidebar.button("🕒 Back to Real Time"):
        kiosk.resume_real_time()
