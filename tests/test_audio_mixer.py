"""
Tests for audio mixing filter graphs and commands.

Test cases:
1. Track preparation filter (trim, volume)
2. Mix filter with and without overlay tracks
3. Full mix command layout
"""

from scene_composer.render.audio_mixer import (
    AudioMixer,
    MixTrack,
    build_mix_filter,
    build_track_filter,
    seconds,
)


class TestFilters:
    def test_seconds_literal(self):
        assert seconds(0) == "0.000"
        assert seconds(6500) == "6.500"
        assert seconds(1) == "0.001"

    def test_track_filter_trims_and_scales(self):
        assert build_track_filter(1500, 3000, 0.5) == (
            "atrim=start=1.500:duration=3.000,asetpts=PTS-STARTPTS,volume=0.5"
        )

    def test_track_filter_omits_unity_volume(self):
        assert "volume" not in build_track_filter(0, 1000, 1.0)

    def test_mix_without_tracks_applies_master_volume_to_shot_audio(self):
        assert build_mix_filter([], 0.8) == "[0:a]volume=0.8[aout]"

    def test_mix_delays_tracks_to_their_offsets(self):
        graph = build_mix_filter(
            [MixTrack("intro.wav", start_ms=0), MixTrack("bgm.wav", start_ms=4000)],
            master_volume=1.5,
        )

        parts = graph.split(";")
        assert parts[0] == "[1:a]asetpts=PTS-STARTPTS[t1]"
        assert parts[1] == "[2:a]asetpts=PTS-STARTPTS,adelay=4000:all=1[t2]"
        assert parts[2].startswith("[0:a][t1][t2]amix=inputs=3:duration=first")
        assert "normalize=0" in parts[2]
        assert parts[2].endswith("volume=1.5[aout]")


class TestAudioMixerCommands:
    def test_prepare_command_writes_stereo_wav(self, settings):
        cmd = AudioMixer(settings).build_prepare_command(
            "/in/bgm.mp3", "/out/track.wav", trim_start_ms=250, duration_ms=2000, volume=0.7
        )

        assert cmd[0] == settings.ffmpeg_path
        assert cmd[cmd.index("-i") + 1] == "/in/bgm.mp3"
        assert cmd[cmd.index("-af") + 1] == (
            "atrim=start=0.250:duration=2.000,asetpts=PTS-STARTPTS,volume=0.7"
        )
        assert cmd[cmd.index("-ac") + 1] == "2"
        assert cmd[-1] == "/out/track.wav"

    def test_mix_command_copies_video_and_limits_duration(self, settings):
        cmd = AudioMixer(settings).build_mix_command(
            "/work/concat.mp4",
            [MixTrack("/work/track-000.wav", 1000)],
            "/work/composite.mp4",
            master_volume=1.0,
            duration_ms=6500,
        )

        inputs = [cmd[i + 1] for i, arg in enumerate(cmd) if arg == "-i"]
        assert inputs == ["/work/concat.mp4", "/work/track-000.wav"]
        assert cmd[cmd.index("-c:v") + 1] == "copy"
        assert cmd[cmd.index("-t") + 1] == "6.500"
        assert cmd[cmd.index("-b:a") + 1] == settings.render_audio_bitrate
        assert "+faststart" in cmd
        assert cmd[-1] == "/work/composite.mp4"
