from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from domain.entity.classification import MessageLabel
from domain.entity.inbound_event import Sender

# Кнопки клавиатуры пользователя
KEY_SEND_DOC = "📄 Send Document"
KEY_SEND_MPESA = "🧾 Send Mpesa Text / Screenshot"
KEY_HELP = "❓ Help"

USER_KEYBOARD: List[List[str]] = [[KEY_SEND_DOC], [KEY_SEND_MPESA], [KEY_HELP]]

MARKDOWN = "Markdown"

# Ограничение Telegram на длину текстового сообщения
MESSAGE_LIMIT = 4096
TRUNCATION_MARK = "… (truncated, full text forwarded below)"

OPERATOR_LABELS = {
    MessageLabel.CHAT: "📨 New message from user",
    MessageLabel.PAYMENT: "💰 Payment text from user",
    MessageLabel.UNDERPAYMENT: "⚠️ Possible underpayment from user",
}


def telegram_length(text: str) -> int:
    """Длина в единицах UTF-16, как ее считает Telegram"""
    return len(text.encode("utf-16-le")) // 2


def truncate_to(text: str, limit: int) -> str:
    # Разрезанная суррогатная пара отбрасывается целиком
    return text.encode("utf-16-le")[:max(limit, 0) * 2].decode("utf-16-le", errors="ignore")


def format_amount(amount: Optional[Decimal]) -> str:
    if amount is None:
        return "?"
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal(1)))
    return f"{amount:.2f}"


@dataclass(frozen=True)
class ReplyTexts:
    """Тексты ответов пользователям и оператору"""
    recipient_display_name: str = "John Wanjala"
    till_number: str = "6164915"
    price_check: Decimal = Decimal("60")
    price_recheck: Decimal = Decimal("50")
    resume_time: str = "6 AM"

    # --- Пользователь ---

    def welcome(self) -> str:
        return (
            "Turnitin Reports Bot\n\n"
            "What can this bot do?\n\n"
            "This bot generates Turnitin plagiarism and AI reports.\n\n"
            f"✅ Name: {self.recipient_display_name}\n"
            f"✅ Lipa Na Mpesa Till Number: {self.till_number}\n\n"
            "📌 Instructions:\n"
            "1️⃣ Send your document here as a file (not as a photo).\n"
            "2️⃣ Send your Mpesa payment text or screenshot.\n"
            "3️⃣ Wait for confirmation and then receive your report.\n\n"
            "💰 Pricing\n"
            f"• Price / check: {format_amount(self.price_check)} KES\n"
            f"• Recheck: {format_amount(self.price_recheck)} KES\n"
            "• No bargaining, please 😊"
        )

    def inactive_notice(self) -> str:
        return (
            f"⚠️ The bot is currently inactive and will resume at {self.resume_time}. "
            "Please try again later."
        )

    def file_received(self) -> str:
        return (
            "📄 I’ve received your file.\n\n"
            "Now please send your *Mpesa payment* text or screenshot.\n\n"
            f"✅ Lipa Na Mpesa Till Number: *{self.till_number}*\n"
            f"💰 Price per check: *{format_amount(self.price_check)} KES* "
            f"(recheck *{format_amount(self.price_recheck)} KES*)\n"
            "Once payment is confirmed, your Turnitin AI & Plag report will be processed."
        )

    def payment_received(self) -> str:
        return (
            "✅ I’ve received your payment details.\n\n"
            "Your file will now be *queued for processing*.\n"
            "You’ll receive your Turnitin AI & Plag report here once it’s ready.\n\n"
            "If I need anything else, I’ll let you know."
        )

    def possible_underpayment(self, amount: Optional[Decimal], minimum: Optional[Decimal]) -> str:
        return (
            "⚠️ I’ve received your payment details, but the amount "
            f"(*{format_amount(amount)} KES*) is below the expected "
            f"*{format_amount(minimum)} KES*.\n\n"
            f"Please top up via *Lipa Na Mpesa Till Number {self.till_number}* "
            "and send the new Mpesa message, or reply here if this is a recheck."
        )

    def how_to_send_document(self) -> str:
        return (
            "📄 *How to send your document:*\n\n"
            "1️⃣ Tap the *📎 (attachment)* or *+* icon in Telegram.\n"
            "2️⃣ Choose *File* (not Gallery/Photo).\n"
            "3️⃣ Select your DOC/PDF and send.\n\n"
            "Once I receive it, I’ll ask for your Mpesa payment."
        )

    def how_to_send_payment(self) -> str:
        return (
            "🧾 *How to send your Mpesa payment:*\n\n"
            f"1️⃣ Pay via *Lipa Na Mpesa Till Number {self.till_number}*.\n"
            "2️⃣ Copy the Mpesa *SMS text* or take a *screenshot*.\n"
            "3️⃣ Paste the text here, or send the screenshot (you can add a caption if you like).\n\n"
            "Once I detect the payment, I’ll confirm and start processing your report."
        )

    def quick_help(self) -> str:
        return (
            "❓ *Quick help:*\n\n"
            f"1️⃣ Tap *{KEY_SEND_DOC}* to see how to upload your file.\n"
            f"2️⃣ Tap *{KEY_SEND_MPESA}* to see how to send your payment.\n"
            "3️⃣ After both are received, your Turnitin AI & Plag report will be processed and sent here."
        )

    def keyboard_reply(self, text: str) -> Optional[str]:
        """Ответ на нажатие кнопки клавиатуры или None"""
        replies = {
            KEY_SEND_DOC: self.how_to_send_document,
            KEY_SEND_MPESA: self.how_to_send_payment,
            KEY_HELP: self.quick_help,
        }
        reply = replies.get(text.strip())
        return reply() if reply else None

    # --- Оператор ---

    @staticmethod
    def operator_help() -> str:
        return (
            "👋 Admin mode is ready.\n\n"
            "📩 *Reply with text as the bot:*\n"
            "`/reply <userId> <your message>`\n\n"
            "📁 *Send a file as the bot:*\n"
            "1. Send this command:\n"
            "`/file <userId> Optional caption`\n"
            "(or `/file2 <userId> Optional caption` for the next two files)\n"
            "2. Then upload/send the document in the *next* message.\n\n"
            "🚫 `/cancel` drops the staged delivery.\n\n"
            "Example:\n"
            "`/file 7488919090 Here is your Turnitin report ✅`\n"
            "Then attach the DOC/PDF."
        )

    @staticmethod
    def sender_card(title: str, sender: Sender) -> str:
        return (
            f"{title}:\n"
            f"Name: {sender.full_name}\n"
            f"Username: @{sender.username or 'N/A'}\n"
            f"User ID: {sender.user_id}"
        )

    def new_user_started(self, sender: Sender) -> str:
        return self.sender_card("🔥 New user started the bot", sender)

    def document_from_user(self, sender: Sender) -> str:
        return self.sender_card("📨 Document from user", sender)

    def photo_from_user(self, sender: Sender, label: MessageLabel, amount: Optional[Decimal]) -> str:
        title = "🖼 Photo from user"
        if label != MessageLabel.CHAT:
            title = f"{OPERATOR_LABELS[label]} (photo caption)"
        return self._with_amount(self.sender_card(title, sender), label, amount)

    def message_from_user(self, sender: Sender, label: MessageLabel, amount: Optional[Decimal], text: str) -> str:
        card = self._with_amount(self.sender_card(OPERATOR_LABELS[label], sender), label, amount)
        message = f"{card}\n\n{text}"
        if telegram_length(message) <= MESSAGE_LIMIT:
            return message
        room = MESSAGE_LIMIT - telegram_length(f"{card}\n\n{TRUNCATION_MARK}")
        return f"{card}\n\n{truncate_to(text, room)}{TRUNCATION_MARK}"

    def other_from_user(self, sender: Sender) -> str:
        return self.sender_card("📎 Message from user", sender)

    @staticmethod
    def _with_amount(card: str, label: MessageLabel, amount: Optional[Decimal]) -> str:
        if label == MessageLabel.CHAT:
            return card
        return f"{card}\nAmount: {format_amount(amount)} KES"

    @staticmethod
    def stage_first() -> str:
        return (
            "To send this file to a user, first run:\n"
            "`/file <userId> Optional caption`"
        )

    @staticmethod
    def unknown_command(name: str) -> str:
        return (
            f"🤷 Unknown command /{name}.\n"
            "Available: /reply, /file, /file2, /cancel, /start"
        )

    @staticmethod
    def message_sent(user_id) -> str:
        return f"✅ Message sent to user {user_id}"

    @staticmethod
    def message_failed(cause: Optional[str]) -> str:
        return f"❌ Failed to send message: {cause or 'unknown error'}"

    @staticmethod
    def delivery_staged(user_id, count: int, caption: Optional[str]) -> str:
        files = "file" if count == 1 else f"{count} files"
        message = f"📁 Next {files} will be sent to user {user_id}."
        if caption:
            message += f"\nCaption: {caption}"
        return message + "\nNow upload the document or photo."

    @staticmethod
    def file_sent(user_id, remaining: int) -> str:
        message = f"✅ File sent to user {user_id}"
        if remaining > 0:
            message += f"\n📁 {remaining} more file(s) staged for this user."
        return message

    @staticmethod
    def file_failed(cause: Optional[str]) -> str:
        return f"❌ Failed to send file: {cause or 'unknown error'}"

    @staticmethod
    def delivery_cancelled(user_id, remaining: int) -> str:
        return f"🚫 Staged delivery to user {user_id} cancelled ({remaining} file(s) dropped)."

    @staticmethod
    def nothing_to_cancel() -> str:
        return "Nothing is staged right now."
