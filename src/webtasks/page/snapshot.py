"""
Snapshot Serializer: a self-contained capture of the current page.

The in-page script does what only the page can do: clone the document with
open shadow roots flattened into ``<template shadowrootmode>`` elements,
read location/base/title and same-origin iframe documents, and resolve
resource and iframe URLs with the browser's own URL parser. The rest
happens here on the returned markup: injecting ``<base href>`` when the
document has none. Captures without a resource table (older scripts,
markup-only input) get one built from the markup instead.
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..config import Settings
from ..core.models import (
    IframeSnapshot,
    PageSnapshot,
    SnapshotError,
    SnapshotResult,
)
from ..infrastructure.surface import ScriptSurface
from ..utils.dom import collect_resources, ensure_base_href, parse_html, resolve_reference

logger = logging.getLogger(__name__)

CAPTURE_SCRIPT = r"""(function(){
  try {
    function includeShadowRootsInClone(root, cloneRoot){
      var origEls=root.querySelectorAll('*');
      var cloneEls=cloneRoot.querySelectorAll('*');
      var len=Math.min(origEls.length, cloneEls.length);
      for(var i=0;i<len;i++){
        var o=origEls[i];
        var c=cloneEls[i];
        if(o && c && o.shadowRoot){
          var t=document.createElement('template');
          try { t.setAttribute('shadowrootmode', o.shadowRoot.mode || 'open'); } catch(e) {}
          t.innerHTML=o.shadowRoot.innerHTML;
          c.prepend(t);
        }
      }
    }

    var clone=document.documentElement.cloneNode(true);
    includeShadowRootsInClone(document.documentElement, clone);

    function absolutize(raw){
      try { return new URL(raw, document.baseURI).href; } catch(e) { return raw; }
    }

    var resourceAttrs=[['img','src'],['script','src'],['link','href'],['a','href'],['source','src'],['video','src'],['audio','src'],['iframe','src']];
    var resources=[];
    resourceAttrs.forEach(function(pair){
      document.querySelectorAll(pair[0]+'['+pair[1]+']').forEach(function(el){
        var raw=el.getAttribute(pair[1]);
        if(!raw) return;
        resources.push({tag: pair[0], attr: pair[1], value: raw, absolute: absolutize(raw)});
      });
    });

    var iframes=Array.from(document.querySelectorAll('iframe')).map(function(ifr){
      var src=ifr.getAttribute('src')||'';
      var frameHtml=''; var sameOrigin=false;
      try{
        var doc=ifr.contentDocument;
        if(doc && doc.documentElement){
          frameHtml='<!DOCTYPE html>\n'+doc.documentElement.outerHTML;
          sameOrigin=true;
        }
      }catch(e){ frameHtml=''; sameOrigin=false; }
      return {src: src, absolute: absolutize(src), sameOrigin: sameOrigin, html: frameHtml};
    });

    return JSON.stringify({
      url: location.href,
      origin: location.origin,
      path: location.pathname,
      baseHref: document.baseURI,
      title: document.title||'',
      html: '<!DOCTYPE html>\n'+clone.outerHTML,
      resources: resources,
      iframes: iframes
    });
  } catch(e) {
    return JSON.stringify({error: String(e)});
  }
})()"""


class SnapshotSerializer:
    """
    Captures PageSnapshot values from a script surface.

    ``capture`` waits ``settings.settle_interval`` first so asynchronous
    rendering can finish. When ``settings.archive_snapshots`` is on, the
    markup is also written to ``settings.snapshot_dir``.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    async def capture(self, surface: Optional[ScriptSurface]) -> Optional[SnapshotResult]:
        """
        Capture the current page.

        Args:
            surface: Page script surface; None makes this a no-op

        Returns:
            PageSnapshot, SnapshotError when anything failed, or None when
            there is no surface
        """
        if surface is None:
            return None

        await asyncio.sleep(self.settings.settle_interval)

        try:
            raw = await surface.evaluate_script(CAPTURE_SCRIPT)
            snapshot = self.build(json.loads(raw or "{}"))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Snapshot capture failed: {e}")
            return SnapshotError(error=str(e))

        if isinstance(snapshot, PageSnapshot):
            self._archive(snapshot.html)
        return snapshot

    def build(self, data: Dict[str, Any]) -> SnapshotResult:
        """
        Finish the page's raw capture into a snapshot.

        Args:
            data: Object produced by CAPTURE_SCRIPT

        Returns:
            PageSnapshot, or SnapshotError for an error object or missing
            fields
        """
        if "error" in data:
            return SnapshotError(error=str(data["error"]))
        if "html" not in data or "baseHref" not in data:
            return SnapshotError(error="capture returned no document")

        base_href = data["baseHref"]
        soup = parse_html(data["html"])
        ensure_base_href(soup, base_href)
        path = data.get("path", "")
        resources = data.get("resources")
        if resources is None:
            resources = collect_resources(soup, base_href)

        try:
            return PageSnapshot(
                url=data.get("url", ""),
                origin=data.get("origin", ""),
                path=path,
                path_segments=[segment for segment in path.split("/") if segment],
                base_href=base_href,
                title=data.get("title", ""),
                html=str(soup),
                resources=resources,
                iframes=[
                    IframeSnapshot(
                        src=frame.get("src", ""),
                        absolute_url=frame.get("absolute") or resolve_reference(frame.get("src", ""), base_href),
                        same_origin=bool(frame.get("sameOrigin")),
                        html=frame.get("html", ""),
                    )
                    for frame in data.get("iframes", [])
                ],
            )
        except ValidationError as e:
            return SnapshotError(error=f"invalid capture: {e.error_count()} error(s)")

    def _archive(self, html: str) -> Optional[Path]:
        if not self.settings.archive_snapshots or not html:
            return None
        try:
            directory = self.settings.snapshot_dir
            directory.mkdir(parents=True, exist_ok=True)
            path = directory / f"webview_snapshot_{int(time.time() * 1000)}.html"
            path.write_text(html, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to archive snapshot: {e}")
            return None
        logger.debug(f"Snapshot archived to {path}")
        return path
