"""
Sprout file resolution
Programs are read through a FileResolver: an ordered mount table mapping
path prefixes to provider actors, plus an HTTP provider for URLs.
Every read returns a pykka future; read_text blocks on it.
"""

import os
from typing import Dict, List, Optional, Tuple

import httpx
import pykka

from error_handling import InternalConsistencyError, file_not_found_error, parse_error, runtime_error, msg


# ============================================================================
# PROVIDERS
# ============================================================================

class Provider(pykka.ThreadingActor):
  """Read-only source of program text, addressed by relative path"""

  def read(self, path: str) -> str:
    raise NotImplementedError

  def write(self, path: str, text: str) -> None:
    raise InternalConsistencyError("write", f"providers are read-only ({path})")


class InMemoryProvider(Provider):
  """Serves files from a dict of path -> text"""

  def __init__(self, files: Optional[Dict[str, str]] = None):
    super().__init__()
    self.files = dict(files or {})

  def read(self, path: str) -> str:
    if path not in self.files:
      raise file_not_found_error(path)
    return self.files[path]


class LocalDirectoryProvider(Provider):
  """Serves files below a directory on disk"""

  def __init__(self, root: str = "."):
    super().__init__()
    self.root = root

  def read(self, path: str) -> str:
    full_path = os.path.join(self.root, path)
    try:
      with open(full_path, 'r', encoding='utf-8') as f:
        return f.read()
    except (FileNotFoundError, IsADirectoryError):
      raise file_not_found_error(full_path)
    except OSError as e:
      raise runtime_error(msg('error-file-unreadable', full_path, e.strerror or e), "file-unreadable")
    except UnicodeDecodeError as e:
      raise parse_error(msg('error-file-decode', full_path, e), code="file-not-utf8")


class HttpProvider(Provider):
  """Fetches http:// and https:// URLs"""

  def __init__(self, transport: Optional[httpx.BaseTransport] = None, timeout: float = 30.0):
    super().__init__()
    self.transport = transport
    self.timeout = timeout
    self._client: Optional[httpx.Client] = None

  def on_start(self):
    self._client = httpx.Client(timeout=self.timeout, transport=self.transport, follow_redirects=True)

  def on_stop(self):
    if self._client is not None:
      self._client.close()

  def read(self, path: str) -> str:
    try:
      response = self._client.get(path)
      if response.status_code == 404:
        raise file_not_found_error(path)
      response.raise_for_status()
    except httpx.HTTPError as e:
      raise runtime_error(msg('error-fetch-failed', path, e), "fetch-failed") from e
    return response.text


# ============================================================================
# RESOLVER
# ============================================================================

def is_url(path: str) -> bool:
  return path.startswith("http://") or path.startswith("https://")


def failed_future(err: Exception) -> pykka.Future:
  """A future that re-raises err from get()"""
  future = pykka.ThreadingFuture()
  future.set_exception((type(err), err, err.__traceback__))
  return future


class FileResolver:
  """
  Mount table for reading program text.

  Mounts are (prefix, provider ref) pairs; a path is served by the provider
  with the longest matching prefix, which receives the path with the
  prefix removed. URLs always go to the HTTP provider.
  """

  def __init__(self, mounts: Optional[List[Tuple[str, pykka.ActorRef]]] = None,
               transport: Optional[httpx.BaseTransport] = None, debug: bool = False):
    self.mounts: List[Tuple[str, pykka.ActorRef]] = list(mounts or [])
    self.transport = transport
    self.debug = debug
    self._http: Optional[pykka.ActorRef] = None

  def mount(self, prefix: str, provider: pykka.ActorRef) -> None:
    self.mounts.append((prefix, provider))

  def mount_directory(self, prefix: str, root: str) -> None:
    self.mount(prefix, LocalDirectoryProvider.start(root))

  def mount_memory(self, prefix: str, files: Dict[str, str]) -> None:
    self.mount(prefix, InMemoryProvider.start(files))

  def lookup(self, path: str) -> Optional[Tuple[pykka.ActorRef, str]]:
    """Provider and provider-relative path for path, or None"""
    best = None
    for prefix, provider in self.mounts:
      if path.startswith(prefix) and (best is None or len(prefix) > len(best[0])):
        best = (prefix, provider)
    if best is None:
      return None
    return best[1], path[len(best[0]):]

  def read(self, path: str) -> pykka.Future:
    if is_url(path):
      if self._http is None:
        self._http = HttpProvider.start(self.transport)
      if self.debug:
        print(f"[vfs] fetching {path}")
      return self._http.proxy().read(path)

    found = self.lookup(path)
    if found is None:
      return failed_future(file_not_found_error(path))
    provider, relative = found
    if self.debug:
      print(f"[vfs] reading {path} as {relative!r}")
    return provider.proxy().read(relative)

  def read_text(self, path: str, timeout: Optional[float] = None) -> str:
    return self.read(path).get(timeout=timeout)

  def write(self, path: str, text: str) -> None:
    raise InternalConsistencyError("write", f"the file resolver is read-only ({path})")

  def stop(self) -> None:
    """Stop every provider actor started for this resolver"""
    refs = [provider for _, provider in self.mounts]
    if self._http is not None:
      refs.append(self._http)
      self._http = None
    for ref in refs:
      if ref.is_alive():
        ref.stop()
