"""Audio delivery: rendezvous pipe, speaker playback, and file/speaker tee."""
