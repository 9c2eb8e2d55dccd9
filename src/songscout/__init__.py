"""SongScout - discovers unsigned songwriters from streaming playlists."""

__version__ = "0.1.0"
