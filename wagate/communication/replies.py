"""Canned chat replies (Indonesian).

Pure functions: every reply is built from its inputs only, so handlers
and tests share exactly the same text.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from .. import __version__
from ..commands import Persona
from ..transport.base import GroupInfo

WIB = timezone(timedelta(hours=7), "WIB")
MAX_LISTED_GROUPS = 20
UNNAMED_GROUP = "Tanpa Nama"

ECHO_USAGE = "Silakan berikan teks setelah perintah echo. Contoh: !echo Halo Dunia"

PING_TEXT = "🏓 Pong! Bot sedang aktif dan siap melayani. ⚡"

DISCONNECTED_TEXT = "❌ Bot sedang tidak terhubung ke WhatsApp"

INFO_TEXT = f"""ℹ️ *Informasi Bot*

🤖 *Nama:* WhatsApp Bot API
📝 *Versi:* {__version__}
👨‍💻 *Developer:* WhatsApp Bot Team
🌐 *Bahasa:* Python
📱 *Platform:* WhatsApp Web
⚙️ *Fitur:* Auto-reply, Group Management, Message API

Bot ini dibuat untuk memudahkan komunikasi dan otomasi pesan WhatsApp melalui API."""

TEST_TEXT = """🧪 *Test Bot Response*

✅ *Bot Status:* Aktif dan berfungsi dengan baik
✅ *Connection:* WhatsApp terhubung
✅ *Commands:* Case insensitive aktif
✅ *Web Support:* WhatsApp Web didukung

*Test berhasil!* Bot siap menerima perintah dalam berbagai format:
• huruf BESAR: !HELP, !PING, !STATUS
• huruf kecil: !help, !ping, !status
• Campuran: !HeLp, !PiNg, !StAtUs

Semua format akan dikenali dengan benar! 🎉"""

MARKET_LOADING_TEXT = "🔄 *Mengambil data pasar IDX...*\n\nSilakan tunggu sebentar..."
MARKET_FAILED_TEXT = "❌ *Error:* Gagal mengambil data pasar IDX. Silakan coba lagi nanti."

IMAGE_USAGE_TEXT = (
    "🎨 *Generator Gambar AI*\n\n"
    "Halo! Saya dapat membuat gambar berdasarkan deskripsi Anda.\n\n"
    "Cara menggunakan:\n"
    "• `!img [deskripsi gambar]`\n"
    "• `!img pemandangan gunung dengan matahari terbenam`\n"
    "• `!img kucing lucu bermain di taman`\n\n"
    "Contoh: `!img robot futuristik di kota masa depan`"
)
IMAGE_WORKING_TEXT = (
    "🎨 *Sedang membuat gambar...*\n\n"
    "Mohon tunggu sebentar ya, saya sedang membuat gambar berdasarkan deskripsi Anda. "
    "Proses ini mungkin membutuhkan waktu 30-60 detik."
)

NO_GROUPS_TEXT = "📝 Tidak ada grup yang diikuti."


def help_text(personas: Iterable[Persona] = ()) -> str:
    persona_lines = ""
    persona_about = ""
    for p in personas:
        persona_lines += (
            f"*!{p.keyword} [pertanyaan]* atau */{p.keyword} [pertanyaan]*\n"
            f"Tanya apa saja ke asisten AI pribadi {p.name}\n\n"
        )
        persona_about += (
            f"*🤖 {p.name} - Asisten AI:*\n"
            f"{p.name} adalah asisten pribadi berbasis Google Gemini yang siap membantu Anda "
            "dengan berbagai pertanyaan dan tugas sehari-hari.\n\n"
        )

    return (
        "🤖 *WhatsApp Bot - Bantuan Penggunaan*\n\n"
        "*📋 Daftar Perintah:*\n\n"
        "*!help* atau */help*\nMenampilkan bantuan dan cara penggunaan bot\n\n"
        "*!hallo* atau */hallo*\nMenyapa bot dengan ramah\n\n"
        f"{persona_lines}"
        "*!groups* atau */groups*\nMenampilkan daftar grup yang diikuti bot\n\n"
        "*!groups [nama grup]* atau */groups [nama grup]*\n"
        "Mencari grup berdasarkan nama dan menampilkan ID-nya\n"
        "Contoh: *!groups Braincore Community*\n\n"
        "*!ping* atau */ping*\nCek apakah bot sedang aktif\n\n"
        "*!status* atau */status*\nMenampilkan status koneksi bot\n\n"
        "*!info* atau */info*\nMenampilkan informasi tentang bot\n\n"
        "*!test* atau */test*\nTest apakah bot berfungsi dengan baik\n\n"
        "*!echo [teks]* atau */echo [teks]*\nMengulang pesan yang dikirim\n\n"
        "*!idx* atau */idx*\nMenampilkan data pasar saham IDX hari ini\n\n"
        "*!img [deskripsi]* atau */img [deskripsi]*\n"
        "Membuat gambar AI berdasarkan deskripsi yang diberikan\n\n"
        "*💡 Tips:*\n"
        "- Semua perintah bisa menggunakan ! atau /\n"
        "- Bot akan merespons secara otomatis\n"
        "- Gunakan perintah di chat pribadi atau grup\n\n"
        f"{persona_about}"
        "*📞 Dukungan:*\nJika ada pertanyaan, silakan hubungi administrator bot."
    )


def greet_text(push_name: str) -> str:
    name = push_name.strip() or "teman"
    return (
        f"👋 Hallo {name}! 😊\n\n"
        "Senang bertemu denganmu! Ada yang bisa saya bantu hari ini?\n\n"
        "Ketik *!help* untuk melihat semua perintah yang tersedia."
    )


def status_text(now: Optional[datetime] = None) -> str:
    now = (now or datetime.now(WIB)).astimezone(WIB)
    return (
        "📊 *Status Bot*\n\n"
        "✅ *Koneksi WhatsApp:* Terhubung\n"
        "🤖 *Bot Status:* Aktif\n"
        f"⏰ *Waktu:* {now.strftime('%d %b %Y, %H:%M:%S')} WIB\n"
        "🔄 *Uptime:* Bot sedang berjalan\n\n"
        "Semua sistem berfungsi dengan baik!"
    )


def echo_text(argument: str) -> str:
    """Echo reply; an empty argument gets the usage text."""
    return f"🔊 *Echo Response:*\n\n{argument or ECHO_USAGE}"


def _group_name(group: GroupInfo) -> str:
    return group.name or UNNAMED_GROUP


def groups_list_text(groups: list[GroupInfo]) -> str:
    if not groups:
        return NO_GROUPS_TEXT
    text = f"📋 *Daftar Grup yang Diikuti* ({len(groups)} grup)\n\n"
    for i, group in enumerate(groups):
        if i >= MAX_LISTED_GROUPS:
            text += f"_... dan {len(groups) - MAX_LISTED_GROUPS} grup lainnya_\n"
            break
        text += f"🏷️ *{_group_name(group)}*\n🆔 `{group.jid}`\n"
    text += "\n💡 _Gunakan `!groups [nama grup]` untuk mencari grup tertentu_\n"
    text += "💡 _Contoh: `!groups Braincore Community`_"
    return text


def search_groups(groups: list[GroupInfo], query: str) -> list[GroupInfo]:
    """Case-insensitive substring match on group names."""
    needle = query.lower()
    return [g for g in groups if needle in _group_name(g).lower()]


def groups_search_text(groups: list[GroupInfo], query: str) -> str:
    if not groups:
        return NO_GROUPS_TEXT
    matched = search_groups(groups, query)
    if not matched:
        return (
            "🔍 *Pencarian Grup*\n\n"
            f"❌ Tidak ditemukan grup dengan nama \"{query}\"\n\n"
            "💡 _Coba gunakan kata kunci yang lebih umum atau gunakan `!groups` untuk melihat semua grup_"
        )
    text = f"🔍 *Hasil Pencarian Grup: \"{query}\"*\n\n📊 Ditemukan {len(matched)} grup:\n\n"
    for group in matched:
        text += f"🏷️ *{_group_name(group)}*\n🆔 `{group.jid}`\n\n"
    text += "💡 _Gunakan `!groups [nama grup]` untuk mencari grup lain_"
    return text


def groups_failed_text(error: Exception) -> str:
    return f"❌ Gagal mengambil daftar grup: {error}"


def persona_usage_text(persona: Persona) -> str:
    kw = persona.keyword
    return (
        f"🤖 *{persona.name} - Asisten Pribadi*\n\n"
        f"Halo! Saya adalah {persona.name}, asisten pribadi Anda yang siap membantu.\n\n"
        "Cara menggunakan:\n"
        f"• `!{kw} [pertanyaan Anda]`\n"
        f"• `!{kw} apa kabar?`\n"
        f"• `!{kw} bantu saya dengan...`\n\n"
        f"Contoh: `!{kw} jelaskan tentang Python programming`"
    )


def persona_thinking_text(persona: Persona) -> str:
    return (
        f"🤖 *{persona.name} sedang berpikir...*\n\n"
        "Mohon tunggu sebentar ya, saya sedang memproses permintaan Anda."
    )


def persona_answer_text(persona: Persona, answer: str) -> str:
    return (
        f"🤖 *{persona.name} - Jawaban untuk Anda:*\n\n{answer}\n\n---\n"
        f"💡 _Ada yang bisa saya bantu lagi? Ketik `!{persona.keyword} [pertanyaan]`_"
    )


def image_caption(prompt: str) -> str:
    return f"🎨 *Gambar AI Generated*\n\nPrompt: {prompt}\n\nDibuat menggunakan Gemini Image Generation"
