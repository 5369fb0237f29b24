import collections

from ncslab.storage import MemoryBackend


class CountingBackend(MemoryBackend):
    """In-memory backend counting reads and string releases."""

    def __init__(self):
        super().__init__()
        self.counter = collections.Counter()

    def metadata(self, array_id):
        self.counter['metadata', array_id] += 1
        return super().metadata(array_id)

    def read_strided(self, array_id, start, count, stride, out):
        self.counter['read_strided', array_id] += 1
        return super().read_strided(array_id, start, count, stride, out)

    def read_one(self, array_id, index, out):
        self.counter['read_one', array_id] += 1
        return super().read_one(array_id, index, out)

    def free_strings(self, handles):
        self.counter['free_strings'] += 1
        return super().free_strings(handles)

    def read_attribute(self, array_id, name, out):
        self.counter['read_attribute', array_id, name] += 1
        return super().read_attribute(array_id, name, out)

    def reads(self, array_id):
        return self.counter['read_strided', array_id]


class NullStringBackend(MemoryBackend):
    """In-memory backend returning a null handle for the second element of
    every string read."""

    def read_strided(self, array_id, start, count, stride, out):
        super().read_strided(array_id, start, count, stride, out)
        if out.dtype == object and out.size > 1:
            out[1] = None
